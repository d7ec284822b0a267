class ConnectorError(Exception):
    """Base exception for the connector."""

    pass


class ConfigurationError(ConnectorError):
    """Raised when the connector configuration or a referenced secret is unusable."""

    pass


class CollectionError(ConnectorError):
    """Raised when a collector cannot list its resource kind at all."""

    pass


class UsageSourceError(ConnectorError):
    """Raised when a usage source (Prometheus, metrics API) cannot be queried."""

    pass


class SinkError(ConnectorError):
    """Raised when a batch cannot be delivered to the billing service."""

    pass


class SerializationError(SinkError):
    """Raised when a payload cannot be built for dispatch."""

    pass
