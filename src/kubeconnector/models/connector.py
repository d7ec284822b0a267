# src/kubeconnector/models/connector.py
"""
Read-only view of the ConnectorConfig custom resource that drives the
connector, plus the settings derived from it for one collection cycle.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field

from .metrics import WireModel


class SecretKeySelector(WireModel):
    name: str
    key: str
    namespace: Optional[str] = None


class BasicAuthSpec(WireModel):
    username: Optional[SecretKeySelector] = None
    password: Optional[SecretKeySelector] = None


class TLSSpec(WireModel):
    insecure_skip_verify: bool = False


class BillingSpec(WireModel):
    """Where collected batches are sent and how to authenticate."""

    base_url: str = Field(
        ..., validation_alias=AliasChoices("baseURL", "baseUrl", "base_url"), serialization_alias="baseURL"
    )
    api_key: SecretKeySelector
    pull_remote_config: bool = Field(False, description="Fetch cluster settings from the billing service every cycle.")


class ClusterContextSpec(WireModel):
    name: str
    type: str = ""
    region: str = ""
    zone: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, str] = Field(default_factory=dict)


class CollectorSpec(WireModel):
    name: str
    enabled: bool = True
    interval: Optional[int] = Field(None, description="Collection interval in seconds.")
    labels: Dict[str, str] = Field(default_factory=dict)


class CostRateOverrides(WireModel):
    """Rates that replace the built-in defaults when set."""

    currency: Optional[str] = None
    cpu_cost_per_core_hour: Optional[float] = Field(None, ge=0)
    memory_cost_per_gb_hour: Optional[float] = Field(None, ge=0)
    storage_class_rates: Dict[str, float] = Field(default_factory=dict)
    default_storage_rate: Optional[float] = Field(None, ge=0)
    load_balancer_hourly: Optional[float] = Field(None, ge=0)
    node_port_hourly: Optional[float] = Field(None, ge=0)


class CostSpec(CostRateOverrides):
    price_book: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, str] = Field(default_factory=dict)


class PrometheusSpec(WireModel):
    url: str
    query_timeout: str = "30s"
    rate_window: Optional[str] = None
    bearer_token: Optional[SecretKeySelector] = None
    basic_auth: Optional[BasicAuthSpec] = None
    tls_config: Optional[TLSSpec] = None


class MetricsServerSpec(WireModel):
    enabled: bool = False


class ConnectorSpec(WireModel):
    billing: BillingSpec = Field(..., validation_alias=AliasChoices("billing", "hakongo"))
    cluster_context: ClusterContextSpec
    collection_interval: Optional[Union[str, int]] = None
    include_namespaces: List[str] = Field(default_factory=list)
    exclude_namespaces: Optional[List[str]] = Field(
        None, description="Namespaces never collected. Defaults to the process-level exclude list when unset."
    )
    include_labels: Dict[str, str] = Field(default_factory=dict)
    collectors: List[CollectorSpec] = Field(default_factory=list)
    cost: Optional[CostSpec] = None
    prometheus: Optional[PrometheusSpec] = None
    metrics_server: Optional[MetricsServerSpec] = None


class ConnectorStatus(WireModel):
    """Observed state written back to the ConnectorConfig status subresource."""

    last_collection_time: Optional[datetime] = None
    collected_count: int = 0
    last_error: Optional[str] = None
    state: str = "Idle"


class ConnectorConfig(BaseModel):
    name: str
    namespace: Optional[str] = None
    spec: ConnectorSpec
    status: ConnectorStatus = Field(default_factory=ConnectorStatus)

    @classmethod
    def from_custom_object(cls, obj: Dict[str, Any]) -> "ConnectorConfig":
        metadata = obj.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace"),
            spec=ConnectorSpec.model_validate(obj.get("spec") or {}),
            status=ConnectorStatus.model_validate(obj.get("status") or {}),
        )


class CollectorConfig(BaseModel):
    """Settings shared by every collector during one cycle."""

    include_namespaces: List[str] = Field(default_factory=list)
    exclude_namespaces: List[str] = Field(default_factory=list)
    include_labels: Dict[str, str] = Field(default_factory=dict)
    collection_interval_seconds: int = 300
    resource_types: Optional[List[str]] = Field(
        None, description="Collector names to run; None means every enabled collector."
    )
    max_concurrent_collections: int = 5


class RemoteClusterConfig(WireModel):
    """Cluster settings returned by the billing service's config endpoint."""

    collection_interval: Optional[Union[str, int]] = None
    include_namespaces: Optional[List[str]] = None
    exclude_namespaces: Optional[List[str]] = None
    resource_types: Optional[List[str]] = None
    costing_configuration: Optional[CostRateOverrides] = None
    alerting_rules: List[Dict[str, Any]] = Field(default_factory=list)
    custom_metrics: List[Dict[str, Any]] = Field(default_factory=list)
