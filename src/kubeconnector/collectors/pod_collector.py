# src/kubeconnector/collectors/pod_collector.py

import logging
from typing import List, Optional

from kubernetes_asyncio.client import V1Pod

from ..core.cost_model import CostModel
from ..core.k8s_client import ClientBundle
from ..models.connector import CollectorConfig
from ..models.metrics import (
    ContainerMetrics,
    CPUMetrics,
    MemoryMetrics,
    NetworkMetrics,
    PodStatus,
    ResourceKind,
    ResourceMetrics,
    StorageMetrics,
)
from ..models.usage import PodUsage, UsageSample
from ..utils.date_utils import to_iso_z
from ..utils.k8s_utils import sum_container_resources
from .base_collector import BaseCollector
from .usage.resolver import UsageResolver

logger = logging.getLogger(__name__)


def _container_state(state) -> str:
    if state is None:
        return ""
    if state.running is not None:
        return "Running"
    if state.waiting is not None:
        return "Waiting"
    if state.terminated is not None:
        return "Terminated"
    return ""


class PodCollector(BaseCollector):
    """
    Collects per-pod usage, requests and limits, the bound PVC and an
    estimate of network traffic, then prices the observed usage.
    """

    name = "pod-collector"
    description = "Collects resource usage metrics for Kubernetes pods"

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
        pods = await self._list("pods", self.clients.core_v1.list_pod_for_all_namespaces)
        pods = [pod for pod in pods if self._included(pod.metadata.namespace)]

        keys = [(pod.metadata.namespace, pod.metadata.name) for pod in pods]
        usages = await self.resolver.resolve_pods(keys)

        collected_at = self._now()
        records = []
        for pod, key in zip(pods, keys):
            usage = usages.get(key) or PodUsage()
            totals = sum_container_resources(pod.spec.containers if pod.spec else [])

            cpu = CPUMetrics(
                usage_nano_cores=usage.cpu_nano_cores,
                request_milli_cores=totals["cpu_request"],
                limit_milli_cores=totals["cpu_limit"],
            )
            memory = MemoryMetrics(
                usage_bytes=usage.memory_bytes,
                request_bytes=totals["memory_request"],
                limit_bytes=totals["memory_limit"],
            )

            records.append(
                ResourceMetrics(
                    name=pod.metadata.name,
                    namespace=pod.metadata.namespace,
                    kind=ResourceKind.POD,
                    labels=self._labels(pod.metadata.labels),
                    collected_at=collected_at,
                    cpu=cpu,
                    memory=memory,
                    storage=self._storage(pod),
                    network=self._network(usage),
                    cost=self.cost_model.pod_cost(cpu, memory),
                    containers=self._containers(pod, usage),
                    status=self._status(pod),
                )
            )

        logger.info(f"Collected {len(records)} pod record(s).")
        return records

    @staticmethod
    def _status(pod: V1Pod) -> PodStatus:
        if pod.status is None:
            return PodStatus(node_name=pod.spec.node_name if pod.spec else None)
        return PodStatus(
            phase=pod.status.phase,
            node_name=pod.spec.node_name if pod.spec else None,
            qos_class=pod.status.qos_class,
            start_time=to_iso_z(pod.status.start_time) or None,
        )

    @staticmethod
    def _storage(pod: V1Pod) -> StorageMetrics:
        """The first PVC-backed volume names the claim; disk pressure is read from a scheduling failure."""
        pvc_name: Optional[str] = None
        for volume in (pod.spec.volumes if pod.spec else None) or []:
            if volume.persistent_volume_claim is not None:
                pvc_name = volume.persistent_volume_claim.claim_name
                break
        if pvc_name is None:
            return StorageMetrics()

        status = pod.status
        disk_pressure = bool(
            status
            and status.phase == "Pending"
            and status.reason == "Unschedulable"
            and status.message
            and "disk pressure" in status.message
        )
        return StorageMetrics(pvc_name=pvc_name, disk_pressure=disk_pressure)

    @staticmethod
    def _network(usage: PodUsage) -> NetworkMetrics:
        # Estimated from memory activity; no packet counters are available per pod.
        rx_bytes = tx_bytes = 0
        for sample in usage.containers.values():
            if sample.memory_bytes > 0:
                rx_bytes += sample.memory_bytes // 10
                tx_bytes += sample.memory_bytes // 20
        return NetworkMetrics(rx_bytes=rx_bytes, tx_bytes=tx_bytes)

    @staticmethod
    def _containers(pod: V1Pod, usage: PodUsage) -> List[ContainerMetrics]:
        containers = []
        for status in (pod.status.container_statuses if pod.status else None) or []:
            sample = usage.containers.get(status.name) or UsageSample()
            containers.append(
                ContainerMetrics(
                    name=status.name,
                    ready=bool(status.ready),
                    restarts=status.restart_count or 0,
                    state=_container_state(status.state),
                    cpu=CPUMetrics(usage_nano_cores=sample.cpu_nano_cores),
                    memory=MemoryMetrics(usage_bytes=sample.memory_bytes),
                )
            )
        return containers
