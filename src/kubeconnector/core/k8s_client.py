import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.rest import ApiException

from .config import config as settings
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_CONFIG_LOCK = asyncio.Lock()
_CONFIG_LOADED = False

# What a call through kubernetes_asyncio can raise: an API status, or a
# transport failure before any status came back.
API_ERRORS = (ApiException, aiohttp.ClientError, asyncio.TimeoutError)


def describe_api_error(error: BaseException) -> str:
    if isinstance(error, ApiException):
        return f"{error.status} {error.reason}"
    return str(error) or type(error).__name__


async def _load_from_kubeconfig() -> None:
    await config.load_kube_config(config_file=settings.KUBECONFIG, context=settings.KUBE_CONTEXT)


async def ensure_k8s_config() -> bool:
    """
    Loads cluster credentials once per process, preferring the service
    account the connector runs under and falling back to a kubeconfig
    (`KUBECONFIG` / `KUBE_CONTEXT`) for local runs.

    Returns:
        bool: whether credentials are available.
    """
    global _CONFIG_LOADED

    async with _CONFIG_LOCK:
        if _CONFIG_LOADED:
            return True

        try:
            config.load_incluster_config()
            source = "service account"
        except config.ConfigException:
            logger.debug("Not running inside a cluster; trying kubeconfig.")
            try:
                await _load_from_kubeconfig()
            except (config.ConfigException, OSError) as e:
                logger.warning(f"No usable cluster credentials: {e}")
                return False
            source = f"kubeconfig (context={settings.KUBE_CONTEXT or 'current'})"

        logger.info(f"Cluster credentials loaded from {source}.")
        _CONFIG_LOADED = True
        return True


@dataclass
class ClientBundle:
    """
    The cluster API handles one orchestrator uses for its whole lifetime.
    All APIs share a single ApiClient connection pool.
    """

    api_client: Optional[client.ApiClient]
    core_v1: client.CoreV1Api
    apps_v1: client.AppsV1Api
    networking_v1: client.NetworkingV1Api
    custom_objects: client.CustomObjectsApi
    version: client.VersionApi

    async def close(self):
        if self.api_client is not None:
            await self.api_client.close()


async def create_client_bundle() -> ClientBundle:
    """
    Builds a ClientBundle from in-cluster or kubeconfig credentials.

    Raises:
        ConfigurationError: if no Kubernetes configuration can be loaded.
    """
    if not await ensure_k8s_config():
        raise ConfigurationError("No Kubernetes configuration available (in-cluster or kubeconfig).")

    api_client = client.ApiClient()
    return ClientBundle(
        api_client=api_client,
        core_v1=client.CoreV1Api(api_client),
        apps_v1=client.AppsV1Api(api_client),
        networking_v1=client.NetworkingV1Api(api_client),
        custom_objects=client.CustomObjectsApi(api_client),
        version=client.VersionApi(api_client),
    )
