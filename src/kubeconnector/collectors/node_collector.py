# src/kubeconnector/collectors/node_collector.py

import logging
from typing import List

from kubernetes_asyncio.client import V1Node

from ..core.cost_model import CostModel
from ..core.k8s_client import ClientBundle
from ..models.connector import CollectorConfig
from ..models.metrics import (
    CPUMetrics,
    MemoryMetrics,
    NetworkMetrics,
    NodeStatus,
    ResourceKind,
    ResourceMetrics,
    StorageMetrics,
)
from ..models.usage import UsageSample
from ..utils.k8s_utils import parse_quantity, quantity_to_bytes, resource_value
from .base_collector import BaseCollector
from .usage.resolver import UsageResolver

logger = logging.getLogger(__name__)

INSTANCE_TYPE_LABELS = ("node.kubernetes.io/instance-type", "beta.kubernetes.io/instance-type")


def _condition_true(node: V1Node, condition_type: str) -> bool:
    for condition in (node.status.conditions if node.status else None) or []:
        if condition.type == condition_type:
            return condition.status == "True"
    return False


class NodeCollector(BaseCollector):
    """Collects whole-node usage and prices allocatable capacity by utilisation."""

    name = "node-collector"
    description = "Collects resource usage metrics for Kubernetes nodes"

    def __init__(
        self,
        clients: ClientBundle,
        collector_config: CollectorConfig,
        resolver: UsageResolver,
        cost_model: CostModel,
    ):
        super().__init__(clients, collector_config)
        self.resolver = resolver
        self.cost_model = cost_model

    async def collect(self) -> List[ResourceMetrics]:
        # Nodes are cluster-scoped and never namespace-filtered.
        nodes = await self._list("nodes", self.clients.core_v1.list_node)
        usages = await self.resolver.resolve_nodes([node.metadata.name for node in nodes])

        collected_at = self._now()
        records = []
        for node in nodes:
            name = node.metadata.name
            usage = usages.get(name) or UsageSample()
            allocatable = node.status.allocatable if node.status else None
            allocatable_cores = float(parse_quantity(resource_value(allocatable, "cpu")))
            allocatable_memory = quantity_to_bytes(resource_value(allocatable, "memory"))

            cpu = CPUMetrics(usage_nano_cores=usage.cpu_nano_cores)
            memory = MemoryMetrics(usage_bytes=usage.memory_bytes)
            labels = node.metadata.labels or {}
            node_info = node.status.node_info if node.status else None

            records.append(
                ResourceMetrics(
                    name=name,
                    kind=ResourceKind.NODE,
                    labels=self._labels(labels),
                    collected_at=collected_at,
                    cpu=cpu,
                    memory=memory,
                    storage=StorageMetrics(disk_pressure=_condition_true(node, "DiskPressure")),
                    network=self._network(node),
                    cost=self.cost_model.node_cost(cpu, memory, allocatable_cores, allocatable_memory),
                    status=NodeStatus(
                        ready=_condition_true(node, "Ready"),
                        instance_type=next((labels[k] for k in INSTANCE_TYPE_LABELS if labels.get(k)), None),
                        kubelet_version=node_info.kubelet_version if node_info else None,
                        allocatable_cpu_cores=allocatable_cores,
                        allocatable_memory_bytes=allocatable_memory,
                    ),
                )
            )

        logger.info("Collected %d node record(s).", len(records))
        return records

    @staticmethod
    def _network(node: V1Node) -> NetworkMetrics:
        # A single packet marks that the node has an internal address.
        for address in (node.status.addresses if node.status else None) or []:
            if address.type == "InternalIP":
                return NetworkMetrics(tx_packets=1)
        return NetworkMetrics()
