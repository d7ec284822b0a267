# src/kubeconnector/core/secrets.py

import base64
import binascii
import logging
from typing import Optional

from kubernetes_asyncio import client

from ..models.connector import SecretKeySelector
from .config import config
from .exceptions import ConfigurationError
from .k8s_client import API_ERRORS, describe_api_error

logger = logging.getLogger(__name__)


class SecretStore:
    """Reads single values out of Kubernetes Secrets."""

    def __init__(self, core_v1: client.CoreV1Api, default_namespace: Optional[str] = None):
        self.api = core_v1
        self.default_namespace = default_namespace or config.SECRET_NAMESPACE

    async def get(self, name: str, key: str, namespace: Optional[str] = None) -> str:
        """
        Returns the decoded value stored under `key`.

        Raises:
            ConfigurationError: if the secret or key is missing, empty or undecodable.
        """
        namespace = namespace or self.default_namespace
        try:
            secret = await self.api.read_namespaced_secret(name, namespace)
        except API_ERRORS as e:
            raise ConfigurationError(f"failed to read secret {namespace}/{name}: {describe_api_error(e)}") from e

        encoded = (secret.data or {}).get(key)
        if not encoded:
            raise ConfigurationError(f"key '{key}' not found in secret {namespace}/{name}")
        try:
            value = base64.b64decode(encoded).decode("utf-8").strip()
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ConfigurationError(f"key '{key}' in secret {namespace}/{name} is not valid base64 text") from e
        if not value:
            raise ConfigurationError(f"key '{key}' in secret {namespace}/{name} is empty")

        logger.debug(f"Resolved secret {namespace}/{name}[{key}]")
        return value

    async def resolve(self, selector: SecretKeySelector, namespace: Optional[str] = None) -> str:
        return await self.get(selector.name, selector.key, selector.namespace or namespace)
