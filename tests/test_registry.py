"""Test plugin registration and lookup."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from vantelemetry.exceptions import PluginUnavailableError
from vantelemetry.plugins import (
    ModbusControlPlugin, PluginRegistry, SimulatedControlPlugin, SimulatedSensorPlugin
)


def test_lookup_by_kind():
    """Test sensors and controls are resolved from separate maps."""
    registry = PluginRegistry()
    registry.register(SimulatedSensorPlugin())
    registry.register(SimulatedControlPlugin())

    assert registry.sensor("Simulated Sensor Plugin").name == "Simulated Sensor Plugin"
    assert registry.control("Simulated Control Plugin").name == "Simulated Control Plugin"
    with pytest.raises(PluginUnavailableError):
        registry.control("Simulated Sensor Plugin")
    with pytest.raises(PluginUnavailableError):
        registry.sensor("Victron")


def test_duplicate_name_rejected():
    """Test two plugins cannot share a name."""
    registry = PluginRegistry()
    registry.register(SimulatedSensorPlugin())
    with pytest.raises(ValueError):
        registry.register(SimulatedSensorPlugin())


def test_non_plugin_rejected():
    """Test an object that is neither kind cannot be registered."""
    with pytest.raises(TypeError):
        PluginRegistry().register(SimpleNamespace(name="Relay", version="0.1"))


def test_failed_plugin_is_dropped():
    """Test a plugin that fails to initialize is removed, the others stay."""
    registry = PluginRegistry()
    registry.register(SimulatedSensorPlugin())
    registry.register(ModbusControlPlugin(client_factory=MagicMock()))

    registry.initialize_all({"Modbus Control Plugin": {"timeout": "never"}})

    assert registry.names() == ["Simulated Sensor Plugin"]
    with pytest.raises(PluginUnavailableError):
        registry.control("Modbus Control Plugin")


def test_initialize_passes_config_blocks():
    """Test each plugin receives the block keyed by its name."""
    plugin = SimulatedSensorPlugin()
    registry = PluginRegistry()
    registry.register(plugin)

    registry.initialize_all({"Simulated Sensor Plugin": {"cycle_seconds": 60}})

    assert plugin._cycle == 60.0


def test_close_all_survives_errors():
    """Test a plugin raising on close does not stop the others closing."""
    registry = PluginRegistry()
    failing = SimulatedSensorPlugin()
    failing.close = MagicMock(side_effect=RuntimeError("boom"))
    other = SimulatedControlPlugin()
    other.close = MagicMock()
    registry.register(failing)
    registry.register(other)

    registry.close_all()

    other.close.assert_called_once()
