"""Test the control service."""
from unittest.mock import MagicMock

import pytest

from vantelemetry.exceptions import NotFoundError
from vantelemetry.interfaces import ConfiguredControlPlugin, ControlPlugin
from vantelemetry.models import Control, ControlType, ControlValue
from vantelemetry.plugins import PluginRegistry
from vantelemetry.services import ControlService, PluginCaller
from vantelemetry.services.controls import CONTROL_STATE_CHANGED, CONTROLS_CHANNEL


def control_named(service, name):
    return next(c for c in service.get_all() if c.name == name)


def test_defaults(control_service):
    """Test the four default controls are seeded."""
    names = [c.name for c in control_service.get_all()]
    assert names == ["Main Lights", "Dimmer Lights", "Water Pump", "Heater"]
    assert control_named(control_service, "Dimmer Lights").state == ControlValue.of_level(0)


def test_set_state_updates_and_publishes_once(control_service, publisher):
    """Test an accepted write is stored and announced exactly once."""
    lights = control_named(control_service, "Main Lights")

    assert control_service.set_state(lights.id, True) is True

    assert control_service.get_by_id(lights.id).state == ControlValue.of_bool(True)
    events = publisher.on(CONTROLS_CHANNEL)
    assert len(events) == 1
    channel, event, payload = events[0]
    assert event == CONTROL_STATE_CHANGED
    assert payload == {"control_id": lights.id, "state": True, "name": "Main Lights"}


def test_set_state_coerces_level(control_service, control_plugin):
    """Test a numeric string becomes a 0-100 level at the plugin."""
    dimmer = control_named(control_service, "Dimmer Lights")

    control_service.set_state(dimmer.id, "130")

    assert control_plugin.get_state("light_dimmer") == ControlValue.of_level(100)
    assert control_service.get_by_id(dimmer.id).state == ControlValue.of_level(100)


def test_rejected_write_keeps_state(store, publisher):
    """Test a plugin refusing the write leaves the stored state alone."""
    plugin = MagicMock(spec=ControlPlugin)
    plugin.name = "Relay"
    plugin.set_state.return_value = False
    registry = PluginRegistry()
    registry.register(plugin)
    service = ControlService(store, registry, caller=PluginCaller(timeout=1.0), publisher=publisher)
    service.start()
    control = service.create(Control(name="Fan", type=ControlType.TOGGLE, control_plugin="Relay",
                                     control_configuration={"control_id": "fan"}))

    assert service.set_state(control.id, True) is False
    assert service.get_by_id(control.id).state == ControlValue.of_bool(False)
    assert publisher.events == []


def test_raising_plugin_returns_false(store, publisher):
    """Test a plugin exception is reported as a failed write."""
    plugin = MagicMock(spec=ControlPlugin)
    plugin.name = "Relay"
    plugin.set_state.side_effect = ConnectionError("no route to host")
    registry = PluginRegistry()
    registry.register(plugin)
    service = ControlService(store, registry, caller=PluginCaller(timeout=1.0), publisher=publisher)
    service.start()
    control = service.create(Control(name="Fan", control_plugin="Relay",
                                     control_configuration={"control_id": "fan"}))

    assert service.set_state(control.id, True) is False
    assert publisher.events == []


def test_missing_plugin_returns_false(control_service):
    """Test a control whose plugin is not registered cannot be switched."""
    control = control_service.create(Control(name="Awning", control_plugin="Victron",
                                             control_configuration={"control_id": "awning"}))
    assert control_service.set_state(control.id, True) is False
    assert control_service.get_state(control.id) == ControlValue.of_bool(False)


def test_configured_plugin_receives_config(store):
    """Test controls with an ip_address use the config-aware plugin path."""
    plugin = MagicMock(spec=ConfiguredControlPlugin)
    plugin.name = "Modbus Control Plugin"
    plugin.set_state_with_config.return_value = True
    registry = PluginRegistry()
    registry.register(plugin)
    service = ControlService(store, registry, caller=PluginCaller(timeout=1.0))
    service.start()
    config = {"ip_address": "10.0.0.5", "register": 2, "register_type": "Coil"}
    control = service.create(Control(name="Pump", control_plugin="Modbus Control Plugin",
                                     control_configuration=config))

    assert service.set_state(control.id, "true") is True
    plugin.set_state_with_config.assert_called_once_with(config, ControlValue.of_bool(True))
    plugin.set_state.assert_not_called()


def test_get_state_reads_plugin(control_service, control_plugin):
    """Test get_state refreshes the cached state from the plugin."""
    heater = control_named(control_service, "Heater")
    control_plugin.set_state("heater", ControlValue.of_bool(True))

    assert control_service.get_state(heater.id) == ControlValue.of_bool(True)
    assert control_service.get_by_id(heater.id).state == ControlValue.of_bool(True)


def test_apply_reported_state(control_service, publisher):
    """Test a hardware-reported change is stored and announced, a repeat is not."""
    dimmer = control_named(control_service, "Dimmer Lights")

    assert control_service.apply_reported_state(dimmer.id, ControlValue.of_level(40)) is True
    assert control_service.apply_reported_state(dimmer.id, ControlValue.of_level(40)) is False
    assert len(publisher.on(CONTROLS_CHANNEL)) == 1


def test_create_places_on_diagram(control_service, positions):
    """Test a new control gets a diagram position."""
    control = control_service.create(Control(name="Fridge", control_plugin="Simulated Control Plugin",
                                             control_configuration={"control_id": "fridge"}))
    position = positions.get(control.id)
    assert position.device_type == "Control"
    assert 0 <= position.x <= 100 and 0 <= position.y <= 100


def test_soft_delete(control_service):
    """Test a deleted control disappears from the active list."""
    heater = control_named(control_service, "Heater")
    control_service.delete(heater.id)

    assert heater.id not in [c.id for c in control_service.get_all()]
    with pytest.raises(NotFoundError):
        control_service.delete("missing")


@pytest.mark.parametrize("control_type,written,stored", [
    (ControlType.TOGGLE, 1, ControlValue.of_bool(True)),
    (ControlType.TOGGLE, "true", ControlValue.of_bool(True)),
    (ControlType.MOMENTARY, 0, ControlValue.of_bool(False)),
    (ControlType.DIMMER, True, ControlValue.of_level(100)),
    (ControlType.SELECTOR, "42", ControlValue.of_level(42)),
])
def test_set_state_matches_control_type(control_service, control_plugin, control_type, written, stored):
    """Test written states are stored in the kind the control type holds."""
    control = control_service.create(Control(name="Aux", type=control_type,
                                             control_plugin="Simulated Control Plugin",
                                             control_configuration={"control_id": "aux"}))

    assert control_service.set_state(control.id, written) is True

    assert control_service.get_by_id(control.id).state == stored
    assert control_plugin.get_state("aux") == stored


def test_create_and_reported_state_match_control_type(control_service, control_plugin):
    """Test new records and hardware reports are coerced to the control type."""
    dimmer = control_service.create(Control(name="Awning LEDs", type=ControlType.DIMMER,
                                            control_plugin="Simulated Control Plugin",
                                            control_configuration={"control_id": "awning"}))
    assert dimmer.state == ControlValue.of_level(0)

    pump = control_named(control_service, "Water Pump")
    assert control_service.apply_reported_state(pump.id, ControlValue.of_level(80)) is True
    assert control_service.get_by_id(pump.id).state == ControlValue.of_bool(True)

    control_plugin.set_state("awning", ControlValue.of_bool(True))
    assert control_service.get_state(dimmer.id) == ControlValue.of_level(100)
