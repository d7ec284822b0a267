# src/kubeconnector/collectors/event_collector.py
"""
Cluster events. Event records never carry usage or cost and are routed to
their own output channel by the orchestrator.
"""

import logging
from typing import List

from kubernetes_asyncio.client import CoreV1Event

from ..models.metrics import EventSource, EventStatus, InvolvedObjectRef, ResourceKind, ResourceMetrics
from ..utils.date_utils import ensure_utc, to_iso_z
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


def event_duration_seconds(event: CoreV1Event) -> int:
    """Seconds from first to last occurrence; zero when missing or inverted."""
    first, last = event.first_timestamp, event.last_timestamp
    if first is None or last is None:
        return 0
    first, last = ensure_utc(first), ensure_utc(last)
    if last <= first:
        return 0
    return int((last - first).total_seconds())


def event_severity(event_type: str) -> str:
    return "warning" if event_type == "Warning" else "info"


class EventCollector(BaseCollector):
    name = "event-collector"
    description = "Collects Kubernetes events"

    async def collect(self) -> List[ResourceMetrics]:
        events = await self._list("events", self.clients.core_v1.list_event_for_all_namespaces)

        collected_at = self._now()
        records = []
        for event in events:
            if not self._included(event.metadata.namespace):
                continue

            source = event.source
            involved = event.involved_object
            records.append(
                ResourceMetrics(
                    name=event.metadata.name,
                    namespace=event.metadata.namespace,
                    kind=ResourceKind.EVENT,
                    labels=self._labels(event.metadata.labels),
                    collected_at=collected_at,
                    status=EventStatus(
                        uid=event.metadata.uid or "",
                        type=event.type or "",
                        reason=event.reason or "",
                        message=event.message or "",
                        count=event.count or 0,
                        source=EventSource(
                            component=(source.component if source else None) or "",
                            host=(source.host if source else None) or "",
                        ),
                        involved_object=InvolvedObjectRef(
                            kind=involved.kind or "",
                            name=involved.name or "",
                            namespace=involved.namespace or "",
                            uid=involved.uid or "",
                        ),
                        first_timestamp=to_iso_z(event.first_timestamp),
                        last_timestamp=to_iso_z(event.last_timestamp),
                        duration_seconds=event_duration_seconds(event),
                        severity=event_severity(event.type),
                    ),
                )
            )

        logger.info("Collected %d event record(s).", len(records))
        return records
