# src/kubeconnector/core/factory.py
"""
Factory functions that turn a ConnectorConfig into the components of one
collection cycle: the collector settings, the usage resolver, the cost
model, the collector set and the billing sink.
"""

import logging
from typing import List, Optional

from ..collectors.base_collector import BaseCollector
from ..collectors.event_collector import EventCollector
from ..collectors.ingress_collector import IngressCollector
from ..collectors.namespace_collector import NamespaceCollector
from ..collectors.node_collector import NodeCollector
from ..collectors.pod_collector import PodCollector
from ..collectors.pv_collector import PersistentVolumeCollector
from ..collectors.service_collector import ServiceCollector
from ..collectors.usage.metrics_server import MetricsServerUsageSource
from ..collectors.usage.prometheus import PrometheusUsageSource
from ..collectors.usage.resolver import UsageResolver
from ..collectors.workload_collector import WorkloadCollector
from ..exporters.api_exporter import APIExporter
from ..models.connector import CollectorConfig, ConnectorConfig, ConnectorSpec, RemoteClusterConfig
from ..utils.date_utils import parse_duration
from .config import config
from .cost_model import CostModel, CostRates
from .k8s_client import ClientBundle
from .secrets import SecretStore

logger = logging.getLogger(__name__)

COLLECTOR_TYPES = (
    PodCollector,
    NodeCollector,
    PersistentVolumeCollector,
    ServiceCollector,
    NamespaceCollector,
    WorkloadCollector,
    IngressCollector,
    EventCollector,
)


def collection_interval_seconds(spec: ConnectorSpec, remote: Optional[RemoteClusterConfig] = None) -> int:
    """
    Remote override first, then the connector's interval, then the shortest
    per-collector interval, then the process default. Always clamped to the
    configured minimum.

    Raises:
        ConfigurationError: if the chosen interval is malformed.
    """
    if remote is not None and remote.collection_interval is not None:
        seconds = parse_duration(remote.collection_interval)
    elif spec.collection_interval is not None:
        seconds = parse_duration(spec.collection_interval)
    else:
        collector_intervals = [c.interval for c in spec.collectors if c.interval]
        seconds = min(collector_intervals) if collector_intervals else config.default_interval_seconds
    return config.clamp_interval(seconds)


def collector_config_from(connector: ConnectorConfig, remote: Optional[RemoteClusterConfig] = None) -> CollectorConfig:
    spec = connector.spec

    include_labels = {"cluster_name": spec.cluster_context.name}
    include_labels.update(spec.cluster_context.labels)
    for collector in spec.collectors:
        include_labels.update(collector.labels)
    include_labels.update(spec.include_labels)

    include = list(spec.include_namespaces)
    exclude = list(config.DEFAULT_EXCLUDE_NAMESPACES if spec.exclude_namespaces is None else spec.exclude_namespaces)
    resource_types = None
    if remote is not None:
        if remote.include_namespaces is not None:
            include = list(remote.include_namespaces)
        if remote.exclude_namespaces is not None:
            exclude = list(remote.exclude_namespaces)
        resource_types = remote.resource_types

    return CollectorConfig(
        include_namespaces=include,
        exclude_namespaces=exclude,
        include_labels=include_labels,
        collection_interval_seconds=collection_interval_seconds(spec, remote),
        resource_types=resource_types,
        max_concurrent_collections=config.MAX_CONCURRENT_COLLECTIONS,
    )


def build_cost_model(spec: ConnectorSpec, remote: Optional[RemoteClusterConfig] = None) -> CostModel:
    rates = CostRates(currency=config.DEFAULT_CURRENCY).with_overrides(spec.cost)
    if remote is not None:
        rates = rates.with_overrides(remote.costing_configuration)
    return CostModel(rates)


async def build_usage_resolver(spec: ConnectorSpec, clients: ClientBundle, secrets: SecretStore) -> UsageResolver:
    """
    Prometheus is the primary source when configured and the metrics API
    fills gaps when enabled. Without either, the metrics API is used alone.

    Raises:
        ConfigurationError: if a referenced Prometheus credential cannot be read.
    """
    primary = None
    if spec.prometheus is not None:
        prom = spec.prometheus
        bearer_token = config.PROMETHEUS_BEARER_TOKEN
        username = config.PROMETHEUS_USERNAME
        password = config.PROMETHEUS_PASSWORD
        if prom.bearer_token is not None:
            bearer_token = await secrets.resolve(prom.bearer_token)
        if prom.basic_auth is not None:
            if prom.basic_auth.username is not None:
                username = await secrets.resolve(prom.basic_auth.username)
            if prom.basic_auth.password is not None:
                password = await secrets.resolve(prom.basic_auth.password)
        verify = config.PROMETHEUS_VERIFY_CERTS
        if prom.tls_config is not None and prom.tls_config.insecure_skip_verify:
            verify = False
        primary = PrometheusUsageSource(
            prom.url,
            bearer_token=bearer_token,
            username=username,
            password=password,
            verify=verify,
            query_timeout=prom.query_timeout,
            rate_window=prom.rate_window,
        )

    metrics_server_enabled = spec.metrics_server is not None and spec.metrics_server.enabled
    if primary is None:
        return UsageResolver(primary=MetricsServerUsageSource(clients.custom_objects))
    if metrics_server_enabled:
        return UsageResolver(primary=primary, secondary=MetricsServerUsageSource(clients.custom_objects))
    return UsageResolver(primary=primary)


def _collector_selected(name: str, resource_types: Optional[List[str]]) -> bool:
    if resource_types is None:
        return True
    short = name[: -len("-collector")] if name.endswith("-collector") else name
    return any(t.lower() in (name, short) for t in resource_types)


def build_collectors(
    clients: ClientBundle,
    spec: ConnectorSpec,
    collector_config: CollectorConfig,
    resolver: UsageResolver,
    cost_model: CostModel,
) -> List[BaseCollector]:
    """
    Every known collector runs unless the connector disables it by name or
    the remote resource types leave it out.
    """
    disabled = {c.name for c in spec.collectors if not c.enabled}
    collectors: List[BaseCollector] = []
    for collector_type in COLLECTOR_TYPES:
        name = collector_type.name
        if name in disabled or not _collector_selected(name, collector_config.resource_types):
            logger.debug("Collector '%s' is disabled.", name)
            continue
        if collector_type in (PodCollector, NodeCollector):
            collectors.append(collector_type(clients, collector_config, resolver, cost_model))
        elif collector_type in (PersistentVolumeCollector, ServiceCollector):
            collectors.append(collector_type(clients, collector_config, cost_model))
        else:
            collectors.append(collector_type(clients, collector_config))
    return collectors


def build_sink(base_url: str, api_key: str) -> APIExporter:
    return APIExporter(base_url, api_key)
