# src/kubeconnector/collectors/pv_collector.py

import logging
from typing import List

from ..core.cost_model import CostModel
from ..core.k8s_client import ClientBundle
from ..models.connector import CollectorConfig
from ..models.metrics import ResourceKind, ResourceMetrics, StorageMetrics, VolumeStatus
from ..utils.k8s_utils import object_key, quantity_to_bytes, resource_value
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


class PersistentVolumeCollector(BaseCollector):
    """
    Collects capacity and binding of PersistentVolumes. A bound volume is
    treated as fully used. Volumes are filtered by the namespace of their
    claim; unbound volumes are always kept.
    """

    name = "pv-collector"
    description = "Collects metrics for Kubernetes PersistentVolumes"

    def __init__(self, clients: ClientBundle, collector_config: CollectorConfig, cost_model: CostModel):
        super().__init__(clients, collector_config)
        self.cost_model = cost_model

    async def collect(self) -> List[ResourceMetrics]:
        core = self.clients.core_v1
        volumes = await self._list("persistent volumes", core.list_persistent_volume)
        claims = await self._list("persistent volume claims", core.list_persistent_volume_claim_for_all_namespaces)
        claim_keys = {object_key(claim.metadata.namespace, claim.metadata.name) for claim in claims}

        collected_at = self._now()
        records = []
        for volume in volumes:
            claim_ref = volume.spec.claim_ref
            if claim_ref is not None and not self._included(claim_ref.namespace):
                continue

            capacity = quantity_to_bytes(resource_value(volume.spec.capacity, "storage"))
            phase = volume.status.phase if volume.status else None
            storage = StorageMetrics(capacity_bytes=capacity)
            if phase == "Bound":
                storage.usage_bytes = capacity
            elif phase == "Available":
                storage.available = capacity

            namespace = None
            claim = None
            if claim_ref is not None:
                claim = object_key(claim_ref.namespace, claim_ref.name)
                if claim in claim_keys:
                    storage.pvc_name = claim_ref.name
                    namespace = claim_ref.namespace

            storage_class = volume.spec.storage_class_name
            records.append(
                ResourceMetrics(
                    name=volume.metadata.name,
                    namespace=namespace,
                    kind=ResourceKind.PERSISTENT_VOLUME,
                    labels=self._labels(volume.metadata.labels),
                    collected_at=collected_at,
                    storage=storage,
                    cost=self.cost_model.volume_cost(
                        capacity, storage_class, block_mode=volume.spec.volume_mode == "Block"
                    ),
                    status=VolumeStatus(
                        phase=phase,
                        storage_class=storage_class,
                        volume_mode=volume.spec.volume_mode,
                        reclaim_policy=volume.spec.persistent_volume_reclaim_policy,
                        claim=claim,
                    ),
                )
            )

        logger.info("Collected %d persistent volume record(s).", len(records))
        return records
