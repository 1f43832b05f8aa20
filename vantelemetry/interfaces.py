"""
Abstract interfaces following Interface Segregation Principle (ISP) and
Dependency Inversion Principle (DIP).

Services depend on these abstractions; concrete plugins, stores and
publishers are chosen at startup and injected.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models.values import ControlValue


class HardwarePlugin(ABC):
    """Common contract for every hardware adapter."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name, referenced by entities (e.g. Tank.sensor_plugin)."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        pass

    @abstractmethod
    def initialize(self, config: Dict[str, Any]) -> None:
        """Prepare the plugin. Raises InitializationError on bad configuration."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        pass

    def close(self) -> None:
        """Release connections. Optional."""
        pass


class SensorPlugin(HardwarePlugin):
    """Read-only numeric channels."""

    @abstractmethod
    def read_value(self, sensor_id: str) -> float:
        """Return the current value; unknown ids log a warning and return 0.0."""
        pass

    @abstractmethod
    def read_all_values(self) -> Dict[str, float]:
        pass


class ControlPlugin(HardwarePlugin):
    """Writable outputs."""

    @abstractmethod
    def set_state(self, control_id: str, value: ControlValue) -> bool:
        """Apply a state. Returns True when the hardware accepted it."""
        pass

    @abstractmethod
    def get_state(self, control_id: str) -> ControlValue:
        pass


class ConfiguredControlPlugin(ControlPlugin):
    """
    A control plugin that needs the whole per-control configuration map
    (address, register...) rather than a bare channel id.
    """

    @abstractmethod
    def set_state_with_config(self, config: Dict[str, Any], value: ControlValue) -> bool:
        pass

    @abstractmethod
    def get_state_with_config(self, config: Dict[str, Any]) -> ControlValue:
        pass


class BlobStore(ABC):
    """Key-value store of JSON documents, keyed by file-like names ("tanks.json")."""

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Return the document, or None when absent. Raises PersistenceError on failure."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass


class Publisher(ABC):
    """Fire-and-forget fan-out to named channels."""

    @abstractmethod
    def publish(self, channel: str, event: str, payload: Any) -> None:
        pass


class NullPublisher(Publisher):
    """Publisher that drops everything. Used when no hub is running."""

    def publish(self, channel: str, event: str, payload: Any) -> None:
        pass
