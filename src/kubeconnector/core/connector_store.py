# src/kubeconnector/core/connector_store.py

import logging

from kubernetes_asyncio import client
from pydantic import ValidationError

from ..models.connector import ConnectorConfig, ConnectorStatus
from .config import config
from .exceptions import ConfigurationError
from .k8s_client import API_ERRORS, describe_api_error

logger = logging.getLogger(__name__)


class ConnectorStore:
    """
    Loads ConnectorConfig objects and writes their status subresource. The
    connector only reads the spec; status is the single place it reports to.
    """

    def __init__(self, custom_objects: client.CustomObjectsApi):
        self.api = custom_objects
        self.group = config.CONNECTOR_CRD_GROUP
        self.version = config.CONNECTOR_CRD_VERSION
        self.plural = config.CONNECTOR_CRD_PLURAL

    async def load(self, name: str) -> ConnectorConfig:
        """
        Raises:
            ConfigurationError: if the object is missing or its spec is invalid.
        """
        try:
            obj = await self.api.get_cluster_custom_object(self.group, self.version, self.plural, name)
        except API_ERRORS as e:
            raise ConfigurationError(f"failed to load ConnectorConfig '{name}': {describe_api_error(e)}") from e

        try:
            return ConnectorConfig.from_custom_object(obj)
        except ValidationError as e:
            raise ConfigurationError(f"ConnectorConfig '{name}' is invalid: {e}") from e

    async def patch_status(self, name: str, status: ConnectorStatus):
        """Writes the status; a failure is logged, never raised."""
        body = {"status": status.model_dump(mode="json", by_alias=True, exclude_none=True)}
        try:
            await self.api.patch_cluster_custom_object_status(self.group, self.version, self.plural, name, body)
        except API_ERRORS as e:
            logger.warning("Failed to update status of ConnectorConfig '%s': %s", name, describe_api_error(e))
