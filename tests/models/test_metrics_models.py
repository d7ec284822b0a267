# tests/models/test_metrics_models.py

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from kubeconnector.exporters.base_exporter import build_event_batch
from kubeconnector.models.metrics import (
    CostMetrics,
    CPUMetrics,
    EventSource,
    EventStatus,
    InvolvedObjectRef,
    NamespaceStatus,
    NodeStatus,
    PodStatus,
    ResourceKind,
    ResourceMetrics,
    VolumeStatus,
    decode_batch,
    encode_batch,
)

COLLECTED_AT = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_total_cost_is_sum_of_components():
    cost = CostMetrics(cpu_cost=0.08, memory_cost=0.04, storage_cost=1.7, network_cost=0.025)

    assert cost.total_cost == pytest.approx(1.845)
    assert cost.model_dump(by_alias=True)["totalCost"] == pytest.approx(1.845)


def test_total_cost_cannot_be_assigned():
    with pytest.raises((AttributeError, ValueError)):
        CostMetrics().total_cost = 5


def test_negative_usage_is_rejected():
    with pytest.raises(ValidationError):
        CPUMetrics(usage_nano_cores=-1)


def test_usage_core_percent_derived_from_nanocores():
    cpu = CPUMetrics(usage_nano_cores=250_000_000)
    assert cpu.usage_core_percent == 0.25
    assert cpu.model_dump(by_alias=True)["usageCorePercent"] == 0.25


def test_status_must_match_kind():
    with pytest.raises(ValidationError):
        ResourceMetrics(name="web", kind=ResourceKind.POD, status=NodeStatus(ready=True))


def test_status_dict_is_decoded_for_kind():
    record = ResourceMetrics.model_validate(
        {"name": "pv-1", "kind": "PersistentVolume", "status": {"phase": "Bound", "storageClass": "premium-ssd"}}
    )

    assert isinstance(record.status, VolumeStatus)
    assert record.status.storage_class == "premium-ssd"


def test_wire_shape_uses_camel_case():
    record = ResourceMetrics(
        name="web-1",
        namespace="shop",
        kind=ResourceKind.POD,
        collected_at=COLLECTED_AT,
        cpu=CPUMetrics(usage_nano_cores=1_000_000_000, request_milli_cores=500),
        status=PodStatus(phase="Running", node_name="node-1"),
    )

    payload = json.loads(encode_batch([record]))

    (item,) = payload
    assert item["kind"] == "Pod"
    assert item["collectedAt"] == "2024-05-01T12:00:00Z"
    assert item["cpu"]["usageNanoCores"] == 1_000_000_000
    assert item["cpu"]["requestMilliCores"] == 500
    assert item["cpu"]["usageCorePercent"] == 1.0
    assert item["cost"]["totalCost"] == 0
    assert item["status"] == {"phase": "Running", "nodeName": "node-1", "qosClass": None, "startTime": None}


def test_encoded_batch_decodes_to_equal_records():
    records = [
        ResourceMetrics(
            name="shop",
            kind=ResourceKind.NAMESPACE,
            collected_at=COLLECTED_AT,
            status=NamespaceStatus(phase="Active", age="1h", age_seconds=3600, finalizers=["kubernetes"]),
        ),
        ResourceMetrics(
            name="node-1",
            kind=ResourceKind.NODE,
            collected_at=COLLECTED_AT,
            cost=CostMetrics(cpu_cost=0.08, memory_cost=0.04),
            status=NodeStatus(ready=True, allocatable_cpu_cores=4),
        ),
    ]

    decoded = decode_batch(encode_batch(records))

    assert decoded == records
    assert json.loads(encode_batch(records))[0]["status"]["finalizer"] == ["kubernetes"]


def test_event_batch_payload():
    event = ResourceMetrics(
        name="web-1.17c",
        namespace="shop",
        kind=ResourceKind.EVENT,
        labels={"cluster_name": "prod-eu"},
        collected_at=COLLECTED_AT,
        status=EventStatus(
            uid="evt-uid",
            type="Warning",
            reason="BackOff",
            message="Back-off restarting failed container",
            count=3,
            source=EventSource(component="kubelet", host="node-1"),
            involved_object=InvolvedObjectRef(kind="Pod", name="web-1", namespace="shop", uid="pod-uid"),
            first_timestamp="2024-05-01T11:40:00Z",
            last_timestamp="2024-05-01T12:00:00Z",
            duration_seconds=1200,
            severity="warning",
        ),
    )
    pod = ResourceMetrics(name="web-1", namespace="shop", kind=ResourceKind.POD)

    batch = build_event_batch("prod-eu", {"name": "prod-eu"}, [event, pod])
    payload = batch.model_dump(mode="json", by_alias=True)

    assert payload["clusterId"] == "prod-eu"
    assert payload["context"] == {"name": "prod-eu"}
    (resource,) = payload["resources"]
    assert resource["uid"] == "evt-uid"
    assert resource["involvedObject"]["kind"] == "Pod"
    assert resource["metadata"]["creationTimestamp"] == "2024-05-01T12:00:00Z"
    assert resource["metadata"]["labels"] == {"cluster_name": "prod-eu"}
    assert resource["metrics"] == {
        "count": 3,
        "firstTimestamp": "2024-05-01T11:40:00Z",
        "lastTimestamp": "2024-05-01T12:00:00Z",
        "durationSeconds": 1200,
        "severity": "warning",
    }
