"""Exporters package: destinations for collection batches."""

from .api_exporter import APIExporter
from .base_exporter import MetricsSink, build_event_batch
from .json_exporter import JSONExporter

__all__ = ["APIExporter", "JSONExporter", "MetricsSink", "build_event_batch"]
