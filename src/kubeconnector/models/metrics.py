# src/kubeconnector/models/metrics.py
"""
This module defines the Pydantic data models for every resource record the
connector collects. A ResourceMetrics record carries exactly one kind; its
`status` payload is the variant registered for that kind, so each kind keeps
its own typed attributes while the wire shape stays a plain JSON object.

All models serialise with camelCase aliases (`by_alias=True`) to match the
billing service's wire format.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field, model_validator
from pydantic.alias_generators import to_camel

from ..utils.date_utils import to_iso_z

NANO_CORES_PER_CORE = 1e9


class WireModel(BaseModel):
    """Base for models exchanged with the billing service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResourceKind(str, Enum):
    """Kubernetes object kinds a record can describe."""

    POD = "Pod"
    NODE = "Node"
    PERSISTENT_VOLUME = "PersistentVolume"
    SERVICE = "Service"
    NAMESPACE = "Namespace"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    INGRESS = "Ingress"
    EVENT = "Event"


# --- Usage sub-records ---


class CPUMetrics(WireModel):
    """CPU usage in canonical units."""

    usage_nano_cores: int = Field(0, ge=0, description="Observed CPU usage in nanocores.")
    request_milli_cores: int = Field(0, ge=0, description="Summed CPU requests in millicores.")
    limit_milli_cores: int = Field(0, ge=0, description="Summed CPU limits in millicores.")
    throttling_seconds: float = Field(0.0, ge=0)

    @computed_field(alias="usageCorePercent")
    @property
    def usage_core_percent(self) -> float:
        """Usage expressed in cores, always derived from the nanocore value."""
        return self.usage_nano_cores / NANO_CORES_PER_CORE


class MemoryMetrics(WireModel):
    usage_bytes: int = Field(0, ge=0, description="Observed working-set memory in bytes.")
    request_bytes: int = Field(0, ge=0)
    limit_bytes: int = Field(0, ge=0)
    rss_bytes: int = Field(0, ge=0)
    page_faults: int = Field(0, ge=0)
    major_page_faults: int = Field(0, ge=0)


class StorageMetrics(WireModel):
    usage_bytes: int = Field(0, ge=0)
    capacity_bytes: int = Field(0, ge=0)
    available: int = Field(0, ge=0, description="Bytes available for binding or writing.")
    pvc_name: Optional[str] = Field(None, description="Bound PersistentVolumeClaim, if any.")
    disk_pressure: bool = Field(False, description="Whether the object reports disk pressure.")


class NetworkMetrics(WireModel):
    rx_bytes: int = Field(0, ge=0)
    tx_bytes: int = Field(0, ge=0)
    rx_packets: int = Field(0, ge=0)
    tx_packets: int = Field(0, ge=0)
    rx_errors: int = Field(0, ge=0)
    tx_errors: int = Field(0, ge=0)
    rx_dropped: int = Field(0, ge=0)
    tx_dropped: int = Field(0, ge=0)


class CostMetrics(WireModel):
    """
    Hourly cost of a resource. The total is always the sum of its parts and
    cannot be assigned on its own.
    """

    cpu_cost: float = Field(0.0, ge=0)
    memory_cost: float = Field(0.0, ge=0)
    storage_cost: float = Field(0.0, ge=0)
    network_cost: float = Field(0.0, ge=0)
    currency: str = Field("USD", description="ISO currency code shared by all components.")

    @computed_field(alias="totalCost")
    @property
    def total_cost(self) -> float:
        return self.cpu_cost + self.memory_cost + self.storage_cost + self.network_cost


class ContainerMetrics(WireModel):
    """Per-container usage and state inside a Pod record."""

    name: str
    ready: bool = False
    restarts: int = 0
    state: str = ""
    cpu: CPUMetrics = Field(default_factory=CPUMetrics)
    memory: MemoryMetrics = Field(default_factory=MemoryMetrics)


# --- Kind-specific status payloads ---


class PodStatus(WireModel):
    phase: Optional[str] = None
    node_name: Optional[str] = None
    qos_class: Optional[str] = None
    start_time: Optional[str] = None


class NodeStatus(WireModel):
    ready: bool = False
    instance_type: Optional[str] = None
    kubelet_version: Optional[str] = None
    allocatable_cpu_cores: float = 0.0
    allocatable_memory_bytes: int = 0


class VolumeStatus(WireModel):
    phase: Optional[str] = None
    storage_class: Optional[str] = None
    volume_mode: Optional[str] = None
    reclaim_policy: Optional[str] = None
    claim: Optional[str] = Field(None, description="'namespace/name' of the claim bound to the volume.")


class ServiceStatus(WireModel):
    type: str = "ClusterIP"
    cluster_ip: Optional[str] = None
    session_affinity: Optional[str] = None
    external_ips: List[str] = Field(default_factory=list)
    ready_endpoints: int = 0
    not_ready_endpoints: int = 0


class NamespaceStatus(WireModel):
    phase: Optional[str] = None
    age: str = "0s"
    age_seconds: int = 0
    finalizers: List[str] = Field(default_factory=list, alias="finalizer")


class WorkloadCondition(WireModel):
    type: str
    status: str
    reason: Optional[str] = None
    message: Optional[str] = None


class DeploymentStatus(WireModel):
    replicas: int = 0
    available_replicas: int = 0
    updated_replicas: int = 0
    ready_replicas: int = 0
    observed_generation: Optional[int] = None
    collision_count: Optional[int] = None
    conditions: List[WorkloadCondition] = Field(default_factory=list)
    strategy: Optional[str] = None
    min_ready_seconds: int = 0
    revision_history_limit: Optional[int] = None


class StatefulSetStatus(WireModel):
    replicas: int = 0
    ready_replicas: int = 0
    current_replicas: int = 0
    updated_replicas: int = 0
    observed_generation: Optional[int] = None
    conditions: List[WorkloadCondition] = Field(default_factory=list)
    update_strategy: Optional[str] = None
    service_name: Optional[str] = None


class DaemonSetStatus(WireModel):
    desired_number_scheduled: int = 0
    current_number_scheduled: int = 0
    number_ready: int = 0
    updated_number_scheduled: int = 0
    number_available: int = 0
    number_unavailable: int = 0
    observed_generation: Optional[int] = None
    conditions: List[WorkloadCondition] = Field(default_factory=list)
    update_strategy: Optional[str] = None


class IngressServicePort(WireModel):
    name: Optional[str] = None
    number: Optional[int] = None


class IngressServiceBackend(WireModel):
    name: Optional[str] = None
    port: IngressServicePort = Field(default_factory=IngressServicePort)


class IngressBackend(WireModel):
    service: Optional[IngressServiceBackend] = None


class IngressPath(WireModel):
    path: Optional[str] = None
    path_type: Optional[str] = None
    backend: IngressBackend = Field(default_factory=IngressBackend)


class IngressRule(WireModel):
    host: Optional[str] = None
    paths: List[IngressPath] = Field(default_factory=list)


class IngressTLS(WireModel):
    hosts: List[str] = Field(default_factory=list)
    secret_name: Optional[str] = None


class IngressStatus(WireModel):
    ingress_class: Optional[str] = Field(None, alias="class")
    load_balancer: List[str] = Field(default_factory=list, description="IPs or hostnames assigned to the ingress.")
    rules: List[IngressRule] = Field(default_factory=list)
    tls: List[IngressTLS] = Field(default_factory=list)


class EventSource(WireModel):
    component: str = ""
    host: str = ""


class InvolvedObjectRef(WireModel):
    kind: str = ""
    name: str = ""
    namespace: str = ""
    uid: str = ""


class EventStatus(WireModel):
    uid: str = ""
    type: str = ""
    reason: str = ""
    message: str = ""
    count: int = 0
    source: EventSource = Field(default_factory=EventSource)
    involved_object: InvolvedObjectRef = Field(default_factory=InvolvedObjectRef)
    first_timestamp: str = ""
    last_timestamp: str = ""
    duration_seconds: int = Field(0, ge=0)
    severity: str = "info"


StatusPayload = Union[
    PodStatus,
    NodeStatus,
    VolumeStatus,
    ServiceStatus,
    NamespaceStatus,
    DeploymentStatus,
    StatefulSetStatus,
    DaemonSetStatus,
    IngressStatus,
    EventStatus,
]

STATUS_TYPES = {
    ResourceKind.POD: PodStatus,
    ResourceKind.NODE: NodeStatus,
    ResourceKind.PERSISTENT_VOLUME: VolumeStatus,
    ResourceKind.SERVICE: ServiceStatus,
    ResourceKind.NAMESPACE: NamespaceStatus,
    ResourceKind.DEPLOYMENT: DeploymentStatus,
    ResourceKind.STATEFUL_SET: StatefulSetStatus,
    ResourceKind.DAEMON_SET: DaemonSetStatus,
    ResourceKind.INGRESS: IngressStatus,
    ResourceKind.EVENT: EventStatus,
}


class ResourceMetrics(WireModel):
    """
    One record per observed Kubernetes object for one collection cycle.
    """

    name: str = Field(..., description="Object name.")
    namespace: Optional[str] = Field(None, description="Object namespace; None for cluster-scoped kinds.")
    kind: ResourceKind
    labels: Dict[str, str] = Field(default_factory=dict)
    collected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cpu: CPUMetrics = Field(default_factory=CPUMetrics)
    memory: MemoryMetrics = Field(default_factory=MemoryMetrics)
    storage: StorageMetrics = Field(default_factory=StorageMetrics)
    network: NetworkMetrics = Field(default_factory=NetworkMetrics)
    cost: CostMetrics = Field(default_factory=CostMetrics)
    containers: List[ContainerMetrics] = Field(default_factory=list)
    status: Optional[StatusPayload] = None

    @model_validator(mode="before")
    @classmethod
    def _decode_status_for_kind(cls, data):
        if not isinstance(data, dict):
            return data
        status = data.get("status")
        kind = data.get("kind")
        if isinstance(status, dict) and kind is not None:
            status_cls = STATUS_TYPES[ResourceKind(kind)]
            data = {**data, "status": status_cls.model_validate(status)}
        return data

    @model_validator(mode="after")
    def _status_matches_kind(self):
        if self.status is not None and not isinstance(self.status, STATUS_TYPES[self.kind]):
            raise ValueError(f"status of type {type(self.status).__name__} does not belong to kind {self.kind.value}")
        return self

    @property
    def is_event(self) -> bool:
        return self.kind == ResourceKind.EVENT


_BATCH_ADAPTER = TypeAdapter(List[ResourceMetrics])


def encode_batch(batch: List[ResourceMetrics]) -> bytes:
    """Encodes a batch as the JSON array posted to the billing service."""
    return _BATCH_ADAPTER.dump_json(batch, by_alias=True)


def decode_batch(payload: Union[bytes, str]) -> List[ResourceMetrics]:
    return _BATCH_ADAPTER.validate_json(payload)


# --- Event channel payload ---


class EventMetadata(WireModel):
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    creation_timestamp: str = ""


class EventCounters(WireModel):
    count: int = 0
    first_timestamp: str = ""
    last_timestamp: str = ""
    duration_seconds: int = 0
    severity: str = "info"


class EventResource(WireModel):
    """Shape of one event in the payload sent to the events endpoint."""

    namespace: str = ""
    name: str
    uid: str = ""
    type: str = ""
    reason: str = ""
    message: str = ""
    source: EventSource = Field(default_factory=EventSource)
    involved_object: InvolvedObjectRef = Field(default_factory=InvolvedObjectRef)
    metadata: EventMetadata = Field(default_factory=EventMetadata)
    metrics: EventCounters = Field(default_factory=EventCounters)

    @classmethod
    def from_record(cls, record: ResourceMetrics) -> Optional["EventResource"]:
        """Builds the payload entry for an Event record; other kinds yield None."""
        if not record.is_event or not isinstance(record.status, EventStatus):
            return None
        status = record.status
        return cls(
            namespace=record.namespace or "",
            name=record.name,
            uid=status.uid,
            type=status.type,
            reason=status.reason,
            message=status.message,
            source=status.source,
            involved_object=status.involved_object,
            metadata=EventMetadata(
                labels=record.labels,
                creation_timestamp=to_iso_z(record.collected_at),
            ),
            metrics=EventCounters(
                count=status.count,
                first_timestamp=status.first_timestamp,
                last_timestamp=status.last_timestamp,
                duration_seconds=status.duration_seconds,
                severity=status.severity,
            ),
        )


class EventBatch(WireModel):
    """Body posted to the events endpoint."""

    cluster_id: str
    context: Dict[str, Any] = Field(default_factory=dict)
    collected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resources: List[EventResource] = Field(default_factory=list)
