# src/kubeconnector/exporters/api_exporter.py
"""
Sends collection batches to the billing service over HTTP.

Both endpoints authenticate with the `X-API-Key` header and only HTTP 200
counts as a successful delivery.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from ..core.config import config
from ..core.exceptions import SerializationError, SinkError
from ..models.connector import RemoteClusterConfig
from ..models.metrics import ResourceMetrics, encode_batch
from ..utils.http_client import get_async_http_client
from .base_exporter import MetricsSink, build_event_batch

logger = logging.getLogger(__name__)

METRICS_PATH = "/v1/metrics"
EVENTS_PATH = "/v1/metrics/events"
CLUSTER_CONFIG_PATH = "/v1/clusters/{cluster_id}/config"


class APIExporter(MetricsSink):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else config.SINK_TIMEOUT_SECONDS
        self._client = http_client

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = get_async_http_client(self.timeout, headers={"X-API-Key": self.api_key})
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "X-API-Key": self.api_key}

    async def _post(self, path: str, content: bytes):
        url = f"{self.base_url}{path}"
        try:
            response = await self._ensure_client().post(url, content=content, headers=self._headers())
        except httpx.HTTPError as e:
            raise SinkError(f"failed to send to {url}: {e}") from e

        if response.status_code != 200:
            raise SinkError(f"unexpected status code {response.status_code} from {url}")
        logger.debug("Delivered %d bytes to %s", len(content), url)

    async def send(self, batch: List[ResourceMetrics]) -> None:
        try:
            payload = encode_batch(batch)
        except PydanticSerializationError as e:
            raise SerializationError(f"failed to encode metrics batch: {e}") from e
        await self._post(METRICS_PATH, payload)

    async def send_events(self, cluster_id: str, context: Dict[str, Any], events: List[ResourceMetrics]) -> None:
        try:
            payload = build_event_batch(cluster_id, context, events).model_dump_json(by_alias=True).encode("utf-8")
        except (PydanticSerializationError, ValidationError) as e:
            raise SerializationError(f"failed to encode event batch: {e}") from e
        await self._post(EVENTS_PATH, payload)

    async def fetch_cluster_config(self, cluster_id: str) -> Optional[RemoteClusterConfig]:
        """
        Raises:
            SinkError: if the service cannot be reached, answers non-200 or returns an unusable body.
        """
        url = f"{self.base_url}{CLUSTER_CONFIG_PATH.format(cluster_id=cluster_id)}"
        try:
            response = await self._ensure_client().get(url, headers={"X-API-Key": self.api_key})
        except httpx.HTTPError as e:
            raise SinkError(f"failed to fetch cluster config from {url}: {e}") from e

        if response.status_code != 200:
            raise SinkError(f"unexpected status code {response.status_code} from {url}")
        try:
            return RemoteClusterConfig.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SinkError(f"invalid cluster config from {url}: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
