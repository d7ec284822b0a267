# tests/core/test_orchestrator.py

import base64
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from kubernetes_asyncio import client

from kubeconnector.collectors.base_collector import BaseCollector
from kubeconnector.core.exceptions import CollectionError, ConfigurationError, SinkError
from kubeconnector.core.orchestrator import CollectionOrchestrator, CycleState, partition
from kubeconnector.exporters.base_exporter import MetricsSink
from kubeconnector.models.connector import ConnectorConfig, RemoteClusterConfig
from kubeconnector.models.metrics import EventStatus, PodStatus, ResourceKind, ResourceMetrics

# --- Helpers ---


def make_connector(pull_remote_config=False):
    return ConnectorConfig.from_custom_object(
        {
            "metadata": {"name": "prod", "namespace": "ops"},
            "spec": {
                "billing": {
                    "baseURL": "https://api.example.com",
                    "apiKey": {"name": "billing", "key": "api-key"},
                    "pullRemoteConfig": pull_remote_config,
                },
                "clusterContext": {"name": "prod-eu", "type": "aws", "region": "eu-west-1"},
            },
        }
    )


def pod_record(name="web-1"):
    return ResourceMetrics(name=name, namespace="shop", kind=ResourceKind.POD, status=PodStatus(phase="Running"))


def event_record(name="evt-1"):
    return ResourceMetrics(
        name=name, namespace="shop", kind=ResourceKind.EVENT, status=EventStatus(uid="u1", type="Warning")
    )


def fake_collector(name, records=None, error=None):
    collector = MagicMock(spec=BaseCollector)
    collector.name = name
    collector.collect = AsyncMock(return_value=records or [], side_effect=error)
    collector.close = AsyncMock()
    return collector


def fake_sink():
    sink = MagicMock(spec=MetricsSink)
    sink.send = AsyncMock()
    sink.send_events = AsyncMock()
    sink.fetch_cluster_config = AsyncMock(return_value=None)
    sink.close = AsyncMock()
    return sink


@pytest.fixture
def cluster(clients):
    """Clients answering the calls every cycle makes: billing secret, version and nodes."""
    clients.core_v1.read_namespaced_secret = AsyncMock(
        return_value=client.V1Secret(data={"api-key": base64.b64encode(b"key-1").decode()})
    )
    clients.version.get_code = AsyncMock(return_value=MagicMock(git_version="v1.29.3"))
    clients.core_v1.list_node = AsyncMock(return_value=client.V1NodeList(items=[]))
    return clients


@pytest.fixture
def store():
    store = MagicMock()
    store.load = AsyncMock(return_value=make_connector())
    store.patch_status = AsyncMock()
    return store


def make_orchestrator(cluster, store, sink):
    return CollectionOrchestrator("prod", clients=cluster, store=store, sink_factory=MagicMock(return_value=sink))


# --- Test Cases ---


def test_partition_splits_events_from_resources():
    resources, events = partition([pod_record("a"), event_record("e"), pod_record("b")])

    assert [r.name for r in resources] == ["a", "b"]
    assert [r.name for r in events] == ["e"]


@pytest.mark.asyncio
async def test_cycle_dispatches_both_partitions_and_reports(cluster, store):
    sink = fake_sink()
    collectors = [fake_collector("pod-collector", [pod_record()]), fake_collector("event-collector", [event_record()])]
    orchestrator = make_orchestrator(cluster, store, sink)

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=collectors):
        result = await orchestrator.run_cycle()

    assert result.state == CycleState.IDLE
    assert result.collected == 2
    assert result.resources_sent == 1
    assert result.events_sent == 1
    assert result.errors == []

    (sent,) = sink.send.await_args.args
    assert [r.name for r in sent] == ["web-1"]
    cluster_id, context, events = sink.send_events.await_args.args
    assert cluster_id == "prod-eu"
    assert context["provider"] == "aws"
    assert [r.name for r in events] == ["evt-1"]

    for collector in collectors:
        collector.close.assert_awaited_once()

    name, status = store.patch_status.await_args.args
    assert name == "prod"
    assert status.state == "Idle"
    assert status.collected_count == 2
    assert status.last_error is None
    assert status.last_collection_time is not None
    assert orchestrator.state == CycleState.IDLE


@pytest.mark.asyncio
async def test_failing_collector_does_not_stop_the_others(cluster, store):
    sink = fake_sink()
    collectors = [
        fake_collector("pod-collector", [pod_record()]),
        fake_collector("service-collector", error=CollectionError("failed to list services: 403 Forbidden")),
        fake_collector("node-collector", error=RuntimeError("boom")),
    ]

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=collectors):
        result = await make_orchestrator(cluster, store, sink).run_cycle()

    assert result.state == CycleState.IDLE
    assert result.collected == 1
    assert len(result.errors) == 2
    sink.send.assert_awaited_once()
    (_, status) = store.patch_status.await_args.args
    assert status.last_error is not None


@pytest.mark.asyncio
async def test_sink_failure_on_one_partition_still_sends_the_other(cluster, store):
    sink = fake_sink()
    sink.send = AsyncMock(side_effect=SinkError("unexpected status code 500"))
    collectors = [fake_collector("mixed", [pod_record(), event_record()])]

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=collectors):
        result = await make_orchestrator(cluster, store, sink).run_cycle()

    assert result.state == CycleState.IDLE
    assert result.resources_sent == 0
    assert result.events_sent == 1
    sink.send_events.assert_awaited_once()
    assert "send metrics" in result.last_error


@pytest.mark.asyncio
async def test_empty_partitions_are_not_sent(cluster, store):
    sink = fake_sink()
    collectors = [fake_collector("pod-collector", [pod_record()])]

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=collectors):
        await make_orchestrator(cluster, store, sink).run_cycle()

    sink.send.assert_awaited_once()
    sink.send_events.assert_not_awaited()


@pytest.mark.asyncio
async def test_configuration_error_ends_cycle_in_error(cluster, store):
    store.load = AsyncMock(side_effect=ConfigurationError("ConnectorConfig 'prod' is invalid"))
    sink = fake_sink()

    result = await make_orchestrator(cluster, store, sink).run_cycle()

    assert result.state == CycleState.ERROR
    assert result.collected == 0
    sink.send.assert_not_awaited()
    (_, status) = store.patch_status.await_args.args
    assert status.state == "Error"
    assert "invalid" in status.last_error
    assert status.last_collection_time is None


@pytest.mark.asyncio
async def test_context_failure_keeps_previous_collection_time(cluster, store):
    connector = make_connector()
    connector.status.last_collection_time = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    store.load = AsyncMock(return_value=connector)
    cluster.version.get_code = AsyncMock(side_effect=CollectionError("failed to resolve cluster context"))

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=[]):
        result = await make_orchestrator(cluster, store, fake_sink()).run_cycle()

    assert result.state == CycleState.ERROR
    (_, status) = store.patch_status.await_args.args
    assert status.last_collection_time == connector.status.last_collection_time


@pytest.mark.asyncio
async def test_unreachable_api_server_ends_cycle_in_error(cluster, store):
    cluster.version.get_code = AsyncMock(side_effect=aiohttp.ClientConnectionError("api server unreachable"))
    orchestrator = make_orchestrator(cluster, store, fake_sink())

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=[]):
        result = await orchestrator.run_cycle()

    assert result.state == CycleState.ERROR
    assert "api server unreachable" in result.last_error
    assert orchestrator.state == CycleState.IDLE
    store.patch_status.assert_awaited_once()
    (_, status) = store.patch_status.await_args.args
    assert status.state == CycleState.ERROR.value


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded_and_reported(cluster, store):
    orchestrator = make_orchestrator(cluster, store, fake_sink())

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", side_effect=RuntimeError("boom")):
        result = await orchestrator.run_cycle()

    assert result.state == CycleState.ERROR
    assert result.errors == ["Initializing: boom"]
    assert orchestrator.state == CycleState.IDLE
    store.patch_status.assert_awaited_once()


@pytest.mark.asyncio
async def test_clients_and_sink_are_created_once(clients, store):
    sink = fake_sink()
    sink_factory = MagicMock(return_value=sink)
    client_factory = AsyncMock(return_value=clients)
    clients.core_v1.read_namespaced_secret = AsyncMock(
        return_value=client.V1Secret(data={"api-key": base64.b64encode(b"key-1").decode()})
    )
    clients.version.get_code = AsyncMock(return_value=MagicMock(git_version="v1.29.3"))
    clients.core_v1.list_node = AsyncMock(return_value=client.V1NodeList(items=[]))
    orchestrator = CollectionOrchestrator(
        "prod", store=store, client_factory=client_factory, sink_factory=sink_factory
    )

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=[]):
        await orchestrator.run_cycle()
        await orchestrator.run_cycle()

    client_factory.assert_awaited_once()
    sink_factory.assert_called_once_with("https://api.example.com", "key-1")


@pytest.mark.asyncio
async def test_rotated_api_key_replaces_cached_sink(cluster, store):
    old_sink, new_sink = fake_sink(), fake_sink()
    sink_factory = MagicMock(side_effect=[old_sink, new_sink])
    orchestrator = CollectionOrchestrator("prod", clients=cluster, store=store, sink_factory=sink_factory)

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=[]):
        await orchestrator.run_cycle()
        cluster.core_v1.read_namespaced_secret = AsyncMock(
            return_value=client.V1Secret(data={"api-key": base64.b64encode(b"key-2").decode()})
        )
        await orchestrator.run_cycle()

    assert sink_factory.call_count == 2
    old_sink.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_remote_config_sets_interval(cluster, store):
    store.load = AsyncMock(return_value=make_connector(pull_remote_config=True))
    sink = fake_sink()
    sink.fetch_cluster_config = AsyncMock(return_value=RemoteClusterConfig(collection_interval="15m"))
    orchestrator = make_orchestrator(cluster, store, sink)

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=[]):
        await orchestrator.run_cycle()

    sink.fetch_cluster_config.assert_awaited_once_with("prod-eu")
    assert orchestrator.next_interval() == 900


@pytest.mark.asyncio
async def test_unreachable_remote_config_keeps_local_settings(cluster, store):
    store.load = AsyncMock(return_value=make_connector(pull_remote_config=True))
    sink = fake_sink()
    sink.fetch_cluster_config = AsyncMock(side_effect=SinkError("unexpected status code 503"))
    collectors = [fake_collector("pod-collector", [pod_record()])]

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=collectors):
        result = await make_orchestrator(cluster, store, sink).run_cycle()

    assert result.state == CycleState.IDLE
    assert result.resources_sent == 1


@pytest.mark.asyncio
async def test_fixed_sink_bypasses_billing_secret(cluster, store):
    sink = fake_sink()
    cluster.core_v1.read_namespaced_secret = AsyncMock(side_effect=AssertionError("secret must not be read"))
    orchestrator = CollectionOrchestrator("prod", clients=cluster, store=store, sink=sink)

    collectors = [fake_collector("p", [pod_record()])]
    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=collectors):
        result = await orchestrator.run_cycle()

    assert result.resources_sent == 1


@pytest.mark.asyncio
async def test_close_releases_sinks_but_not_shared_clients(cluster, store):
    sink = fake_sink()
    cluster.api_client = MagicMock()
    cluster.api_client.close = AsyncMock()
    orchestrator = make_orchestrator(cluster, store, sink)

    with patch("kubeconnector.core.orchestrator.factory.build_collectors", return_value=[]):
        await orchestrator.run_cycle()
    await orchestrator.close()

    sink.close.assert_awaited_once()
    cluster.api_client.close.assert_not_awaited()
