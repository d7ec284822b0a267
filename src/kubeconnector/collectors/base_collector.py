# src/kubeconnector/collectors/base_collector.py
"""
This module defines the abstract base class for all resource collectors.
Every collector lists one Kubernetes kind (or one family of kinds), applies
the namespace filter and emits uniform ResourceMetrics records, which makes
collectors interchangeable for the orchestrator.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.exceptions import CollectionError
from ..core.k8s_client import API_ERRORS, ClientBundle, describe_api_error
from ..models.connector import CollectorConfig
from ..models.metrics import ResourceMetrics
from ..utils.namespace_filter import is_namespace_included

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """
    Abstract Base Class for all resource collectors.
    """

    name: str = "collector"
    description: str = ""

    def __init__(self, clients: ClientBundle, collector_config: CollectorConfig):
        self.clients = clients
        self.config = collector_config

    @abstractmethod
    async def collect(self) -> List[ResourceMetrics]:
        """
        Lists the collector's kind and returns one record per included object.

        Raises:
            CollectionError: if the kind cannot be listed at all.
        """
        pass

    async def close(self):
        """
        Clean up resources owned by the collector. Shared cluster clients are
        closed by the orchestrator, not here.
        """
        pass

    def _included(self, namespace: Optional[str]) -> bool:
        return is_namespace_included(namespace, self.config)

    def _labels(self, own: Optional[Dict[str, str]]) -> Dict[str, str]:
        """Configured labels first, so an object's own labels always win."""
        merged = dict(self.config.include_labels)
        merged.update(own or {})
        return merged

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def _list(self, what: str, call: Callable[..., Awaitable[Any]], **kwargs) -> List[Any]:
        try:
            response = await call(watch=False, **kwargs)
        except API_ERRORS as e:
            raise CollectionError(f"failed to list {what}: {describe_api_error(e)}") from e
        items = response.items or []
        logger.debug("%s listed %d %s", self.name, len(items), what)
        return items
