from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.connector import RemoteClusterConfig
from ..models.metrics import EventBatch, EventResource, ResourceMetrics


def build_event_batch(cluster_id: str, context: Dict[str, Any], events: List[ResourceMetrics]) -> EventBatch:
    """Wraps Event records in the payload shape of the events endpoint. Other kinds are skipped."""
    resources = [resource for resource in (EventResource.from_record(e) for e in events) if resource is not None]
    return EventBatch(cluster_id=cluster_id, context=context, resources=resources)


class MetricsSink(ABC):
    """Destination for the two partitions of a collection batch.

    Implementations raise SinkError when a partition cannot be delivered.
    """

    @abstractmethod
    async def send(self, batch: List[ResourceMetrics]) -> None:
        """Deliver resource records."""
        raise NotImplementedError()

    @abstractmethod
    async def send_events(self, cluster_id: str, context: Dict[str, Any], events: List[ResourceMetrics]) -> None:
        """Deliver Event records on the separate event channel."""
        raise NotImplementedError()

    async def fetch_cluster_config(self, cluster_id: str) -> Optional[RemoteClusterConfig]:
        """Remote overrides for the cluster, when the sink offers them."""
        return None

    async def close(self) -> None:
        pass
