from .base import UsageSource
from .metrics_server import MetricsServerUsageSource
from .prometheus import PrometheusUsageSource
from .resolver import UsageResolver

__all__ = ["UsageSource", "MetricsServerUsageSource", "PrometheusUsageSource", "UsageResolver"]
