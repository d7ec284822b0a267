# src/kubeconnector/collectors/usage/metrics_server.py
"""
Usage backed by the cluster's metrics.k8s.io API (metrics-server).
"""

import logging
from typing import Any, Dict, List, Sequence

from kubernetes_asyncio import client

from ...core.exceptions import UsageSourceError
from ...core.k8s_client import API_ERRORS, describe_api_error
from ...models.usage import PodUsage, UsageSample
from ...utils.k8s_utils import cpu_to_nano_cores, quantity_to_bytes
from .base import PodKey, UsageSource

logger = logging.getLogger(__name__)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


def _sample(usage: Dict[str, Any]) -> UsageSample:
    usage = usage or {}
    return UsageSample(
        cpu_nano_cores=max(cpu_to_nano_cores(usage.get("cpu")), 0),
        memory_bytes=max(quantity_to_bytes(usage.get("memory")), 0),
    )


class MetricsServerUsageSource(UsageSource):
    """Lists node and pod metrics in one call per kind."""

    name = "metrics-server"

    def __init__(self, custom_objects: client.CustomObjectsApi):
        self.api = custom_objects

    async def _list(self, plural: str) -> List[Dict[str, Any]]:
        try:
            response = await self.api.list_cluster_custom_object(
                group=METRICS_GROUP, version=METRICS_VERSION, plural=plural
            )
        except API_ERRORS as e:
            raise UsageSourceError(f"metrics API unavailable for {plural}: {describe_api_error(e)}") from e
        return (response or {}).get("items", [])

    async def node_usage(self, names: Sequence[str]) -> Dict[str, UsageSample]:
        wanted = set(names)
        samples = {}
        for item in await self._list("nodes"):
            name = item.get("metadata", {}).get("name")
            if name in wanted:
                samples[name] = _sample(item.get("usage"))
        return samples

    async def pod_usage(self, keys: Sequence[PodKey]) -> Dict[PodKey, PodUsage]:
        wanted = set(keys)
        usages = {}
        for item in await self._list("pods"):
            metadata = item.get("metadata", {})
            key = (metadata.get("namespace"), metadata.get("name"))
            if key not in wanted:
                continue
            containers = {c.get("name"): _sample(c.get("usage")) for c in item.get("containers", []) if c.get("name")}
            usages[key] = PodUsage(containers=containers)
        return usages
