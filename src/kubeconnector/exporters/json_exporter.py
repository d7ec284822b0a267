import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiofiles

from ..core.exceptions import SinkError
from ..models.metrics import ResourceMetrics
from .base_exporter import MetricsSink, build_event_batch


class JSONExporter(MetricsSink):
    """Writes each partition to a JSON file instead of sending it.

    Used for dry runs; the files hold exactly the payloads the billing
    service would receive.
    """

    DEFAULT_FILENAME = "kubeconnector-metrics.json"
    EVENTS_FILENAME = "kubeconnector-events.json"

    def __init__(self, output_dir: str = "."):
        self.output_dir = output_dir
        self.written: List[str] = []

    def _path(self, filename: str) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        base, ext = os.path.splitext(filename)
        return os.path.join(self.output_dir, f"{base}-{stamp}{ext}")

    async def export(self, data: Any, path: Optional[str] = None) -> str:
        out_path = path or self.DEFAULT_FILENAME
        try:
            # Ensure parent directory exists
            os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)

            async with aiofiles.open(out_path, "w", encoding="utf-8") as fh:
                content = json.dumps(data, ensure_ascii=False, indent=2)
                await fh.write(content)
        except OSError as e:
            raise SinkError(f"failed to write {out_path}: {e}") from e
        self.written.append(out_path)
        return out_path

    async def send(self, batch: List[ResourceMetrics]) -> None:
        rows = [record.model_dump(mode="json", by_alias=True) for record in batch]
        await self.export(rows, self._path(self.DEFAULT_FILENAME))

    async def send_events(self, cluster_id: str, context: Dict[str, Any], events: List[ResourceMetrics]) -> None:
        payload = build_event_batch(cluster_id, context, events).model_dump(mode="json", by_alias=True)
        await self.export(payload, self._path(self.EVENTS_FILENAME))
