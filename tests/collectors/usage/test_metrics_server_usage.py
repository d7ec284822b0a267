# tests/collectors/usage/test_metrics_server_usage.py

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from kubernetes_asyncio.client.rest import ApiException

from kubeconnector.collectors.usage.metrics_server import MetricsServerUsageSource
from kubeconnector.core.exceptions import UsageSourceError

NODE_METRICS = {
    "items": [
        {"metadata": {"name": "node-1"}, "usage": {"cpu": "1500m", "memory": "2Gi"}},
        {"metadata": {"name": "node-2"}, "usage": {"cpu": "250000000n", "memory": "512Mi"}},
    ]
}

POD_METRICS = {
    "items": [
        {
            "metadata": {"name": "web-1", "namespace": "shop"},
            "containers": [
                {"name": "app", "usage": {"cpu": "100m", "memory": "64Mi"}},
                {"name": "sidecar", "usage": {"cpu": "5m", "memory": "8Mi"}},
            ],
        },
        {
            "metadata": {"name": "other", "namespace": "shop"},
            "containers": [{"name": "app", "usage": {"cpu": "1", "memory": "1Gi"}}],
        },
    ]
}


def make_api(response=None, error=None):
    api = MagicMock()
    api.list_cluster_custom_object = AsyncMock(return_value=response, side_effect=error)
    return api


@pytest.mark.asyncio
async def test_node_usage_parses_quantities():
    api = make_api(NODE_METRICS)

    usage = await MetricsServerUsageSource(api).node_usage(["node-1", "node-2"])

    assert usage["node-1"].cpu_nano_cores == 1_500_000_000
    assert usage["node-1"].memory_bytes == 2 * 1024**3
    assert usage["node-2"].cpu_nano_cores == 250_000_000
    api.list_cluster_custom_object.assert_awaited_once_with(group="metrics.k8s.io", version="v1beta1", plural="nodes")


@pytest.mark.asyncio
async def test_pod_usage_only_for_requested_pods():
    api = make_api(POD_METRICS)

    usage = await MetricsServerUsageSource(api).pod_usage([("shop", "web-1")])

    assert list(usage) == [("shop", "web-1")]
    pod = usage[("shop", "web-1")]
    assert pod.containers["app"].cpu_nano_cores == 100_000_000
    assert pod.containers["sidecar"].memory_bytes == 8 * 1024**2
    assert pod.cpu_nano_cores == 105_000_000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        ApiException(status=404, reason="Not Found"),
        aiohttp.ClientConnectionError("connection reset"),
        asyncio.TimeoutError(),
    ],
)
async def test_unavailable_metrics_api_raises(error):
    api = make_api(error=error)

    with pytest.raises(UsageSourceError):
        await MetricsServerUsageSource(api).node_usage(["node-1"])
