# src/kubeconnector/core/config.py

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from ..utils.date_utils import parse_duration
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# A .env at the repository root is picked up for local runs.
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

SECRETS_DIR = os.getenv("KUBECONNECTOR_SECRETS_DIR", "/etc/kubeconnector/secrets")


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "t", "y", "yes")


def _as_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """
    Handles the connector's process-level configuration by loading values from environment variables.
    Per-connector settings live on the ConnectorConfig object in the cluster.
    """

    def __init__(self):
        # -- Prometheus credentials (fallback when a connector carries none) ---
        self.PROMETHEUS_BEARER_TOKEN = self._get_secret("PROMETHEUS_BEARER_TOKEN")
        self.PROMETHEUS_USERNAME = self._get_secret("PROMETHEUS_USERNAME")
        self.PROMETHEUS_PASSWORD = self._get_secret("PROMETHEUS_PASSWORD")

    @staticmethod
    def _get_secret(key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Value of a credential, read from `<SECRETS_DIR>/<key>` when that file is
        mounted, otherwise from the environment.

        Raises:
            ConfigurationError: if the mounted file exists but cannot be read.
        """
        path = os.path.join(SECRETS_DIR, key)
        if not os.path.exists(path):
            return os.getenv(key, default)
        try:
            with open(path, "r") as fh:
                value = fh.read().strip()
        except OSError as e:
            raise ConfigurationError(f"Mounted secret '{key}' at {path} is not readable: {e}") from e
        logger.debug("Read secret '%s' from %s.", key, path)
        return value

    # --- Logging variables ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # --- Connector objects ---
    CONNECTOR_NAMES = _as_list(os.getenv("CONNECTOR_NAMES", ""))
    CONNECTOR_CRD_GROUP = os.getenv("CONNECTOR_CRD_GROUP", "hakongo.com")
    CONNECTOR_CRD_VERSION = os.getenv("CONNECTOR_CRD_VERSION", "v1alpha1")
    CONNECTOR_CRD_PLURAL = os.getenv("CONNECTOR_CRD_PLURAL", "connectorconfigs")
    SECRET_NAMESPACE = os.getenv("SECRET_NAMESPACE", "default")

    # --- Cluster access ---
    KUBECONFIG = os.getenv("KUBECONFIG")
    KUBE_CONTEXT = os.getenv("KUBE_CONTEXT")

    # --- Collection variables ---
    DEFAULT_COLLECTION_INTERVAL = os.getenv("DEFAULT_COLLECTION_INTERVAL", "5m")
    MIN_COLLECTION_INTERVAL_SECONDS = int(os.getenv("MIN_COLLECTION_INTERVAL_SECONDS", "300"))
    DEFAULT_EXCLUDE_NAMESPACES = _as_list(os.getenv("DEFAULT_EXCLUDE_NAMESPACES", "kube-system"))
    MAX_CONCURRENT_COLLECTIONS = int(os.getenv("MAX_CONCURRENT_COLLECTIONS", "5"))

    # --- HTTP variables ---
    DEFAULT_TIMEOUT_CONNECT = float(os.getenv("DEFAULT_TIMEOUT_CONNECT", "5"))
    DEFAULT_TIMEOUT_READ = float(os.getenv("DEFAULT_TIMEOUT_READ", "30"))
    USER_AGENT = os.getenv("USER_AGENT", "kubeconnector")
    SINK_TIMEOUT_SECONDS = float(os.getenv("SINK_TIMEOUT_SECONDS", "30"))

    # -- Prometheus variables ---
    PROMETHEUS_RATE_WINDOW = os.getenv("PROMETHEUS_RATE_WINDOW", "5m")
    PROMETHEUS_VERIFY_CERTS = _as_bool(os.getenv("PROMETHEUS_VERIFY_CERTS", "True"))

    # --- Cost variables ---
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")

    @property
    def default_interval_seconds(self) -> int:
        return parse_duration(self.DEFAULT_COLLECTION_INTERVAL)

    def clamp_interval(self, seconds: int) -> int:
        """Never collect more often than the configured floor."""
        return max(int(seconds), self.MIN_COLLECTION_INTERVAL_SECONDS)

    def validate_instance(self):
        if self.MIN_COLLECTION_INTERVAL_SECONDS <= 0:
            raise ValueError("MIN_COLLECTION_INTERVAL_SECONDS must be positive.")
        if self.MAX_CONCURRENT_COLLECTIONS <= 0:
            raise ValueError("MAX_CONCURRENT_COLLECTIONS must be positive.")
        try:
            parse_duration(self.DEFAULT_COLLECTION_INTERVAL)
            parse_duration(self.PROMETHEUS_RATE_WINDOW)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
