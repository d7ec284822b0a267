# src/kubeconnector/collectors/usage/prometheus.py
"""
Usage backed by Prometheus instant queries.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ...core.config import config
from ...core.exceptions import UsageSourceError
from ...models.usage import PodUsage, UsageSample
from ...utils.date_utils import parse_duration
from ...utils.http_client import get_async_http_client
from .base import PodKey, UsageSource

logger = logging.getLogger(__name__)

QUERY_PATHS = ("/api/v1/query", "/query", "/prometheus/api/v1/query")


def _vector_value(item: Dict[str, Any]) -> float:
    value = item.get("value") or [None, "0"]
    try:
        number = float(value[1])
    except (TypeError, ValueError, IndexError):
        return 0.0
    # Prometheus reports NaN and Inf as strings.
    return number if math.isfinite(number) else 0.0


class PrometheusUsageSource(UsageSource):
    """
    Queries node and pod usage one object at a time. A failing object is
    logged and left out of the result; the remaining objects are still
    queried.
    """

    name = "prometheus"

    def __init__(
        self,
        url: str,
        bearer_token: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify: bool = True,
        query_timeout: str = "30s",
        rate_window: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = url.rstrip("/")
        self.bearer_token = bearer_token
        self.username = username
        self.password = password
        self.verify = verify
        self.timeout = parse_duration(query_timeout)
        self.rate_window = rate_window or config.PROMETHEUS_RATE_WINDOW
        self._client = http_client
        self._query_path: Optional[str] = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {}
            if self.bearer_token:
                headers["Authorization"] = f"Bearer {self.bearer_token}"
            auth = None
            if self.username and self.password:
                auth = httpx.BasicAuth(self.username, self.password)
            self._client = get_async_http_client(
                self.timeout, verify=self.verify, headers=headers, auth=auth
            )
        return self._client

    async def instant_query(self, promql: str, timestamp: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Runs an instant query and returns the result vector.

        The first endpoint form that answers successfully is remembered and
        tried first on later queries.

        Raises:
            UsageSourceError: if no endpoint form returns a successful response.
        """
        client = self._ensure_client()
        params = {"query": promql}
        if timestamp is not None:
            params["time"] = str(timestamp.timestamp())

        paths = list(QUERY_PATHS)
        if self._query_path:
            paths.remove(self._query_path)
            paths.insert(0, self._query_path)

        last_err: Optional[Exception] = None
        for path in paths:
            query_url = f"{self.base_url}{path}"
            try:
                response = await client.get(query_url, params=params)
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.debug("Prometheus query at %s failed: %s", query_url, e)
                last_err = e
                continue

            if data.get("status") != "success":
                last_err = UsageSourceError(f"Prometheus returned status '{data.get('status')}': {data.get('error')}")
                logger.debug("Prometheus query at %s unsuccessful: %s", query_url, last_err)
                continue

            self._query_path = path
            return data.get("data", {}).get("result", [])

        raise UsageSourceError(f"Prometheus query failed at {self.base_url}: {last_err}")

    async def _node_sample(self, name: str) -> UsageSample:
        cpu_query = f'sum(rate(node_cpu_seconds_total{{mode!="idle",node="{name}"}}[{self.rate_window}]))'
        mem_query = f'node_memory_MemTotal_bytes{{node="{name}"}} - node_memory_MemAvailable_bytes{{node="{name}"}}'
        cpu_result, mem_result = await asyncio.gather(self.instant_query(cpu_query), self.instant_query(mem_query))
        cores = sum(_vector_value(item) for item in cpu_result)
        memory = sum(_vector_value(item) for item in mem_result)
        return UsageSample(cpu_nano_cores=max(int(cores * 1e9), 0), memory_bytes=max(int(memory), 0))

    async def _pod_sample(self, key: PodKey) -> PodUsage:
        namespace, pod = key
        selector = f'namespace="{namespace}",pod="{pod}",container!="",container!="POD"'
        cpu_query = f"sum(rate(container_cpu_usage_seconds_total{{{selector}}}[{self.rate_window}])) by (container)"
        mem_query = f"sum(container_memory_working_set_bytes{{{selector}}}) by (container)"
        cpu_result, mem_result = await asyncio.gather(self.instant_query(cpu_query), self.instant_query(mem_query))

        containers: Dict[str, UsageSample] = {}
        for item in cpu_result:
            container = item.get("metric", {}).get("container")
            if container:
                containers[container] = UsageSample(cpu_nano_cores=max(int(_vector_value(item) * 1e9), 0))
        for item in mem_result:
            container = item.get("metric", {}).get("container")
            if container:
                sample = containers.get(container, UsageSample())
                containers[container] = UsageSample(
                    cpu_nano_cores=sample.cpu_nano_cores, memory_bytes=max(int(_vector_value(item)), 0)
                )
        return PodUsage(containers=containers)

    async def _guarded(self, kind: str, key, coro):
        try:
            return key, await coro
        except UsageSourceError as e:
            logger.warning("Prometheus usage for %s %s unavailable: %s", kind, key, e)
            return key, None

    async def node_usage(self, names: Sequence[str]) -> Dict[str, UsageSample]:
        results = await asyncio.gather(*(self._guarded("node", name, self._node_sample(name)) for name in names))
        return {name: sample for name, sample in results if sample is not None}

    async def pod_usage(self, keys: Sequence[PodKey]) -> Dict[PodKey, PodUsage]:
        results = await asyncio.gather(*(self._guarded("pod", key, self._pod_sample(key)) for key in keys))
        return {key: usage for key, usage in results if usage is not None and usage.containers}

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
