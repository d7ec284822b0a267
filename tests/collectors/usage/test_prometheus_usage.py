# tests/collectors/usage/test_prometheus_usage.py
"""
PrometheusUsageSource against a mocked Prometheus HTTP API (respx).
"""

import httpx
import pytest
import respx
from httpx import Response

from kubeconnector.collectors.usage.prometheus import PrometheusUsageSource
from kubeconnector.core.exceptions import UsageSourceError

PROM_URL = "http://prometheus.monitoring:9090"


def vector(*samples):
    """Builds an instant-query response from (labels, value) pairs."""
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [{"metric": labels, "value": [1714564800, value]} for labels, value in samples],
        },
    }


def respond_by_query(mapping):
    """respx side effect choosing a response by a substring of the PromQL."""

    def handler(request):
        query = request.url.params.get("query", "")
        for needle, body in mapping.items():
            if needle in query:
                return Response(200, json=body)
        return Response(200, json=vector())

    return handler


@pytest.mark.asyncio
@respx.mock
async def test_node_usage_from_cpu_and_memory_queries():
    respx.get(f"{PROM_URL}/api/v1/query").mock(
        side_effect=respond_by_query(
            {
                "node_cpu_seconds_total": vector(({}, "1.5")),
                "node_memory_MemTotal_bytes": vector(({}, "4294967296")),
            }
        )
    )
    source = PrometheusUsageSource(PROM_URL)

    usage = await source.node_usage(["node-1"])

    assert usage["node-1"].cpu_nano_cores == 1_500_000_000
    assert usage["node-1"].memory_bytes == 4294967296
    await source.close()


@pytest.mark.asyncio
@respx.mock
async def test_pod_usage_grouped_by_container():
    respx.get(f"{PROM_URL}/api/v1/query").mock(
        side_effect=respond_by_query(
            {
                "container_cpu_usage_seconds_total": vector(
                    ({"container": "app"}, "0.25"), ({"container": "sidecar"}, "NaN")
                ),
                "container_memory_working_set_bytes": vector(({"container": "app"}, "1048576")),
            }
        )
    )
    source = PrometheusUsageSource(PROM_URL)

    usage = await source.pod_usage([("shop", "web-1")])

    pod = usage[("shop", "web-1")]
    assert pod.containers["app"].cpu_nano_cores == 250_000_000
    assert pod.containers["app"].memory_bytes == 1048576
    assert pod.containers["sidecar"].cpu_nano_cores == 0
    await source.close()


@pytest.mark.asyncio
@respx.mock
async def test_pod_without_series_is_omitted():
    respx.get(f"{PROM_URL}/api/v1/query").mock(return_value=Response(200, json=vector()))
    source = PrometheusUsageSource(PROM_URL)

    usage = await source.pod_usage([("shop", "gone")])

    assert usage == {}
    await source.close()


@pytest.mark.asyncio
@respx.mock
async def test_query_falls_back_to_alternate_path_and_remembers_it():
    primary_route = respx.get(f"{PROM_URL}/api/v1/query").mock(return_value=Response(404))
    fallback_route = respx.get(f"{PROM_URL}/query").mock(return_value=Response(200, json=vector(({}, "2"))))
    source = PrometheusUsageSource(PROM_URL)

    first = await source.instant_query("up")
    second = await source.instant_query("up")

    assert first[0]["value"][1] == "2"
    assert second[0]["value"][1] == "2"
    assert primary_route.call_count == 1
    assert fallback_route.call_count == 2
    await source.close()


@pytest.mark.asyncio
@respx.mock
async def test_unsuccessful_status_raises_usage_source_error():
    error_body = {"status": "error", "errorType": "bad_data", "error": "parse error"}
    for path in ("/api/v1/query", "/query", "/prometheus/api/v1/query"):
        respx.get(f"{PROM_URL}{path}").mock(return_value=Response(200, json=error_body))
    source = PrometheusUsageSource(PROM_URL)

    with pytest.raises(UsageSourceError):
        await source.instant_query("up")
    await source.close()


@pytest.mark.asyncio
@respx.mock
async def test_unreachable_prometheus_leaves_objects_out():
    for path in ("/api/v1/query", "/query", "/prometheus/api/v1/query"):
        respx.get(f"{PROM_URL}{path}").mock(side_effect=httpx.ConnectError("connection refused"))
    source = PrometheusUsageSource(PROM_URL)

    usage = await source.node_usage(["node-1", "node-2"])

    assert usage == {}
    await source.close()


@pytest.mark.asyncio
@respx.mock
async def test_bearer_token_is_sent():
    route = respx.get(f"{PROM_URL}/api/v1/query").mock(return_value=Response(200, json=vector()))
    source = PrometheusUsageSource(PROM_URL, bearer_token="s3cr3t")

    await source.instant_query("up")

    assert route.calls.last.request.headers["Authorization"] == "Bearer s3cr3t"
    await source.close()
