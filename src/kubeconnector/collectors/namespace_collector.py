# src/kubeconnector/collectors/namespace_collector.py

import logging
from typing import List

from ..models.metrics import NamespaceStatus, ResourceKind, ResourceMetrics
from ..utils.date_utils import ensure_utc, format_duration
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


class NamespaceCollector(BaseCollector):
    """Phase, age and finalizers of every included namespace. No usage or cost."""

    name = "namespace-collector"
    description = "Collects metadata for Kubernetes Namespaces"

    async def collect(self) -> List[ResourceMetrics]:
        namespaces = await self._list("namespaces", self.clients.core_v1.list_namespace)

        collected_at = self._now()
        records = []
        for namespace in namespaces:
            name = namespace.metadata.name
            if not self._included(name):
                continue

            created = namespace.metadata.creation_timestamp
            age = collected_at - ensure_utc(created) if created else None
            records.append(
                ResourceMetrics(
                    name=name,
                    kind=ResourceKind.NAMESPACE,
                    labels=self._labels(namespace.metadata.labels),
                    collected_at=collected_at,
                    status=NamespaceStatus(
                        phase=namespace.status.phase if namespace.status else None,
                        age=format_duration(age) if age else "0s",
                        age_seconds=max(int(age.total_seconds()), 0) if age else 0,
                        finalizers=list((namespace.spec.finalizers if namespace.spec else None) or []),
                    ),
                )
            )

        logger.info("Collected %d namespace record(s).", len(records))
        return records
