"""
Error taxonomy shared by services, plugins and the REST layer.
"""


class VanTelemetryError(Exception):
    """Base class for all errors raised by this package."""
    status_code = 500


class NotFoundError(VanTelemetryError):
    """An entity id could not be resolved."""
    status_code = 404

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class ValidationError(VanTelemetryError):
    """Request payload is malformed, or a route id does not match the body id."""
    status_code = 400


class ServiceNotReadyError(VanTelemetryError):
    """A service was used before start() completed."""
    status_code = 503


class PluginUnavailableError(VanTelemetryError):
    """No plugin is registered under the requested name."""

    def __init__(self, plugin_name: str):
        super().__init__(f"Plugin '{plugin_name}' is not registered")
        self.plugin_name = plugin_name


class PluginCallFailedError(VanTelemetryError):
    """A hardware call raised or timed out."""


class InitializationError(VanTelemetryError):
    """A plugin could not be initialized with the given configuration."""


class PersistenceError(VanTelemetryError):
    """The blob store could not read or write a document."""


class ConfigurationError(VanTelemetryError):
    """Settings could not be read or contain invalid values."""
