# src/kubeconnector/core/orchestrator.py
"""
The collection cycle for one ConnectorConfig.

A cycle walks Initializing -> ContextResolving -> Collecting -> Dispatching
and returns to Idle. Configuration and context failures end the cycle in
Error; collector and sink failures only shrink what the cycle delivers.
The outcome is always written back to the ConnectorConfig status.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from ..collectors.base_collector import BaseCollector
from ..exporters.base_exporter import MetricsSink
from ..models.cluster import ClusterContext
from ..models.connector import ConnectorConfig, ConnectorStatus, RemoteClusterConfig
from ..models.metrics import ResourceMetrics
from . import factory
from .config import config
from .connector_store import ConnectorStore
from .context_provider import ContextProvider
from .exceptions import CollectionError, ConnectorError, SinkError
from .k8s_client import ClientBundle, create_client_bundle
from .secrets import SecretStore

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    IDLE = "Idle"
    INITIALIZING = "Initializing"
    CONTEXT_RESOLVING = "ContextResolving"
    COLLECTING = "Collecting"
    DISPATCHING = "Dispatching"
    ERROR = "Error"


@dataclass
class CycleResult:
    state: CycleState = CycleState.IDLE
    collected: int = 0
    resources_sent: int = 0
    events_sent: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def last_error(self) -> Optional[str]:
        return self.errors[-1] if self.errors else None


def partition(records: List[ResourceMetrics]) -> Tuple[List[ResourceMetrics], List[ResourceMetrics]]:
    """Splits a batch into (resources, events)."""
    resources, events = [], []
    for record in records:
        (events if record.is_event else resources).append(record)
    return resources, events


class CollectionOrchestrator:
    """
    Runs collection cycles for one connector. Cluster clients are created
    once, on first use, and reused by every later cycle. Clients passed in
    are shared and left open on close. A fixed `sink` replaces the billing
    API for every cycle (used for dry runs).
    """

    def __init__(
        self,
        connector_name: str,
        clients: Optional[ClientBundle] = None,
        store: Optional[ConnectorStore] = None,
        sink: Optional[MetricsSink] = None,
        client_factory: Callable[[], Awaitable[ClientBundle]] = create_client_bundle,
        sink_factory: Callable[[str, str], MetricsSink] = factory.build_sink,
    ):
        self.connector_name = connector_name
        self.state = CycleState.IDLE
        self.interval_seconds = config.clamp_interval(config.default_interval_seconds)

        self._clients = clients
        self._owns_clients = clients is None
        self._clients_lock = asyncio.Lock()
        self._client_factory = client_factory
        self._store = store
        self._fixed_sink = sink
        self._sink_factory = sink_factory
        self._sinks: Dict[Tuple[str, str], MetricsSink] = {}

    async def _ensure_clients(self) -> ClientBundle:
        if self._clients is not None:
            return self._clients
        async with self._clients_lock:
            if self._clients is None:
                self._clients = await self._client_factory()
        return self._clients

    def _ensure_store(self, clients: ClientBundle) -> ConnectorStore:
        if self._store is None:
            self._store = ConnectorStore(clients.custom_objects)
        return self._store

    async def _ensure_sink(self, connector: ConnectorConfig, secrets: SecretStore) -> MetricsSink:
        if self._fixed_sink is not None:
            return self._fixed_sink

        billing = connector.spec.billing
        api_key = await secrets.resolve(billing.api_key, connector.namespace)
        key = (billing.base_url, api_key)
        if key not in self._sinks:
            # A rotated key or a moved endpoint replaces the cached sink.
            for stale in self._sinks.values():
                await stale.close()
            self._sinks = {key: self._sink_factory(billing.base_url, api_key)}
        return self._sinks[key]

    async def _pull_remote_config(self, connector: ConnectorConfig, sink: MetricsSink) -> Optional[RemoteClusterConfig]:
        if not connector.spec.billing.pull_remote_config:
            return None
        cluster_id = connector.spec.cluster_context.name
        try:
            remote = await sink.fetch_cluster_config(cluster_id)
        except SinkError as e:
            logger.warning("Could not pull remote config for cluster '%s', keeping local settings: %s", cluster_id, e)
            return None
        if remote is not None and (remote.alerting_rules or remote.custom_metrics):
            logger.info(
                "Remote config carries %d alerting rule(s) and %d custom metric(s); they are not evaluated.",
                len(remote.alerting_rules),
                len(remote.custom_metrics),
            )
        return remote

    async def _run_collector(
        self, collector: BaseCollector, semaphore: asyncio.Semaphore, result: CycleResult
    ) -> List[ResourceMetrics]:
        async with semaphore:
            started = time.monotonic()
            try:
                records = await collector.collect()
            except CollectionError as e:
                logger.warning("Collector '%s' failed: %s", collector.name, e)
                result.errors.append(f"{collector.name}: {e}")
                return []
            except Exception as e:
                logger.error("Unexpected error in collector '%s': %s", collector.name, e, exc_info=True)
                result.errors.append(f"{collector.name}: {e}")
                return []
            logger.info(
                "Collector '%s' returned %d record(s) in %.2fs.",
                collector.name,
                len(records),
                time.monotonic() - started,
            )
            return records

    async def _collect(self, collectors: List[BaseCollector], limit: int, result: CycleResult) -> List[ResourceMetrics]:
        semaphore = asyncio.Semaphore(max(limit, 1))
        batches = await asyncio.gather(*(self._run_collector(c, semaphore, result) for c in collectors))
        return [record for batch in batches for record in batch]

    async def _dispatch(
        self,
        sink: MetricsSink,
        cluster_id: str,
        context: ClusterContext,
        records: List[ResourceMetrics],
        result: CycleResult,
    ):
        resources, events = partition(records)
        logger.info("Dispatching %d resource record(s) and %d event record(s).", len(resources), len(events))

        if resources:
            try:
                await sink.send(resources)
                result.resources_sent = len(resources)
            except SinkError as e:
                logger.error("Failed to send resource metrics: %s", e)
                result.errors.append(f"send metrics: {e}")

        if events:
            try:
                await sink.send_events(cluster_id, context.summary(), events)
                result.events_sent = len(events)
            except SinkError as e:
                logger.error("Failed to send event metrics: %s", e)
                result.errors.append(f"send events: {e}")

    async def run_cycle(self) -> CycleResult:
        """Runs one full cycle. Never raises except on cancellation."""
        result = CycleResult()
        connector: Optional[ConnectorConfig] = None
        collectors: List[BaseCollector] = []
        resolver = None
        collected_at: Optional[datetime] = None
        started = time.monotonic()
        logger.info("--- Starting collection cycle for connector '%s' ---", self.connector_name)

        try:
            self.state = CycleState.INITIALIZING
            clients = await self._ensure_clients()
            connector = await self._ensure_store(clients).load(self.connector_name)
            secrets = SecretStore(clients.core_v1, connector.namespace)
            sink = await self._ensure_sink(connector, secrets)
            remote = await self._pull_remote_config(connector, sink)

            collector_config = factory.collector_config_from(connector, remote)
            self.interval_seconds = collector_config.collection_interval_seconds
            resolver = await factory.build_usage_resolver(connector.spec, clients, secrets)
            cost_model = factory.build_cost_model(connector.spec, remote)
            collectors = factory.build_collectors(clients, connector.spec, collector_config, resolver, cost_model)

            self.state = CycleState.CONTEXT_RESOLVING
            context = await ContextProvider(clients, connector.spec.cluster_context).get_context()

            self.state = CycleState.COLLECTING
            records = await self._collect(collectors, collector_config.max_concurrent_collections, result)
            result.collected = len(records)
            collected_at = datetime.now(timezone.utc)

            self.state = CycleState.DISPATCHING
            await self._dispatch(sink, connector.spec.cluster_context.name, context, records, result)
            result.state = CycleState.IDLE
        except ConnectorError as e:
            logger.error(
                "Collection cycle for connector '%s' failed during %s: %s", self.connector_name, self.state.value, e
            )
            result.errors.append(str(e))
            result.state = CycleState.ERROR
        except Exception as e:
            logger.error(
                "Unexpected error in collection cycle for connector '%s' during %s: %s",
                self.connector_name,
                self.state.value,
                e,
                exc_info=True,
            )
            result.errors.append(f"{self.state.value}: {e}")
            result.state = CycleState.ERROR
        finally:
            for collector in collectors:
                await collector.close()
            if resolver is not None:
                await resolver.close()

        self.state = result.state
        await self._report(connector, result, collected_at)
        self.state = CycleState.IDLE
        logger.info(
            "--- Finished collection cycle for connector '%s' in %.2fs (%d collected, %d error(s)) ---",
            self.connector_name,
            time.monotonic() - started,
            result.collected,
            len(result.errors),
        )
        return result

    async def _report(
        self, connector: Optional[ConnectorConfig], result: CycleResult, collected_at: Optional[datetime]
    ):
        if self._store is None:
            logger.warning("No connector store available; status of '%s' not updated.", self.connector_name)
            return
        previous = connector.status.last_collection_time if connector is not None else None
        status = ConnectorStatus(
            last_collection_time=collected_at or previous,
            collected_count=result.collected,
            last_error=result.last_error,
            state=result.state.value,
        )
        await self._store.patch_status(self.connector_name, status)

    def next_interval(self) -> int:
        """Seconds until the next cycle, never below the configured minimum."""
        return config.clamp_interval(self.interval_seconds)

    async def close(self):
        for sink in self._sinks.values():
            await sink.close()
        self._sinks.clear()
        if self._fixed_sink is not None:
            await self._fixed_sink.close()
        if self._owns_clients and self._clients is not None:
            await self._clients.close()
            self._clients = None
