from typing import Any, List, Optional

from ..exceptions import PluginCallFailedError, PluginUnavailableError
from ..interfaces import BlobStore, ConfiguredControlPlugin, NullPublisher, Publisher
from ..models import Control, ControlType, ControlValue, new_id, utcnow
from ..plugins.registry import PluginRegistry
from .base import EntityCollection, ManagedService, PluginCaller
from .positions import DevicePositionService

CONTROLS_KEY = "controls.json"
SIMULATED_CONTROL_PLUGIN = "Simulated Control Plugin"

CONTROLS_CHANNEL = "controls"
CONTROL_STATE_CHANGED = "control_state_changed"

BOOL_CONTROLS = (ControlType.TOGGLE, ControlType.MOMENTARY)


def coerce_state(control_type: ControlType, raw: Any) -> ControlValue:
    """Toggles and momentary switches hold a bool, dimmers and selectors a 0-100 level."""
    value = ControlValue.parse(raw)
    if control_type in BOOL_CONTROLS:
        return ControlValue.of_bool(value.as_bool())
    return ControlValue.of_level(value.as_level())


def default_controls() -> List[Control]:
    now = utcnow()

    def make(name, ctype, control_id, state, icon):
        return Control(id=new_id(), name=name, type=ctype, state=state,
                       control_plugin=SIMULATED_CONTROL_PLUGIN,
                       control_configuration={"control_id": control_id},
                       icon_name=icon, last_updated=now)

    return [
        make("Main Lights", ControlType.TOGGLE, "light_main", ControlValue.of_bool(False), "lightbulb"),
        make("Dimmer Lights", ControlType.DIMMER, "light_dimmer", ControlValue.of_level(0), "light_mode"),
        make("Water Pump", ControlType.TOGGLE, "water_pump", ControlValue.of_bool(False), "water_drop"),
        make("Heater", ControlType.TOGGLE, "heater", ControlValue.of_bool(False), "thermostat"),
    ]


class ControlService(ManagedService):
    """
    Control records plus state reads/writes through each control's plugin.
    A successful set_state is announced on the "controls" channel.
    """

    service_name = "ControlService"

    def __init__(self, store: BlobStore, registry: PluginRegistry,
                 caller: Optional[PluginCaller] = None, publisher: Optional[Publisher] = None,
                 positions: Optional[DevicePositionService] = None):
        super().__init__()
        self._positions = positions
        self._registry = registry
        self._caller = caller or PluginCaller()
        self._publisher = publisher or NullPublisher()
        self._controls: EntityCollection[Control] = EntityCollection(
            store, CONTROLS_KEY, Control, "Control", self._logger)

    def set_publisher(self, publisher: Publisher) -> None:
        self._publisher = publisher

    def _collections(self):
        return [self._controls]

    def _load(self) -> None:
        self._controls.load(default_controls)

    def get_all(self) -> List[Control]:
        self._require_ready()
        return self._controls.active()

    def get_by_id(self, control_id: str) -> Control:
        self._require_ready()
        return self._controls.get(control_id)

    def find_by_plugin(self, plugin_name: str) -> List[Control]:
        return [c for c in self.get_all() if c.control_plugin == plugin_name]

    def create(self, control: Control) -> Control:
        self._require_ready()
        control.state = coerce_state(control.type, control.state)
        self._controls.insert(control)
        self._logger.info(f"Created control {control.id} ({control.name})")
        if self._positions is not None:
            self._positions.place_new_device(control.id, "Control")
        return control

    def update(self, control: Control) -> Control:
        self._require_ready()
        control.state = coerce_state(control.type, control.state)
        self._controls.put(control, must_exist=False)
        self._logger.info(f"Updated control {control.id} ({control.name})")
        return control

    def delete(self, control_id: str) -> None:
        self._require_ready()
        self._controls.soft_delete(control_id)
        self._logger.info(f"Deleted control {control_id}")

    def _plugin_for(self, control: Control):
        try:
            return self._registry.control(control.control_plugin)
        except PluginUnavailableError as e:
            self._logger.warning(f"Control {control.name}: {e}")
            return None

    def get_state(self, control_id: str) -> ControlValue:
        """Live state from the plugin, or the cached state if that fails."""
        self._require_ready()
        control = self._controls.get(control_id)
        plugin = self._plugin_for(control)
        if plugin is None:
            return control.state

        config = control.control_configuration
        try:
            if isinstance(plugin, ConfiguredControlPlugin) and config.get("ip_address"):
                value = self._caller.call(f"{plugin.name}.get_state({control.name})",
                                          plugin.get_state_with_config, config)
            else:
                channel = config.get("control_id")
                if not channel:
                    self._logger.warning(f"Control {control.name} has no control_id configured")
                    return control.state
                value = self._caller.call(f"{plugin.name}.get_state({channel})", plugin.get_state, channel)
        except PluginCallFailedError as e:
            self._logger.error(f"Error reading state for control {control.name}: {e}")
            return control.state

        control.state = coerce_state(control.type, value)
        control.last_updated = utcnow()
        return control.state

    def set_state(self, control_id: str, value: Any) -> bool:
        """
        Push a new state to the hardware. The stored state only changes when
        the plugin accepts the write; failures return False.
        """
        self._require_ready()
        control = self._controls.get(control_id)
        value = coerce_state(control.type, value)
        plugin = self._plugin_for(control)
        if plugin is None:
            return False

        config = control.control_configuration
        try:
            if isinstance(plugin, ConfiguredControlPlugin) and config.get("ip_address"):
                accepted = self._caller.call(f"{plugin.name}.set_state({control.name})",
                                             plugin.set_state_with_config, config, value)
            else:
                channel = config.get("control_id")
                if not channel:
                    self._logger.warning(f"Control {control.name} has no control_id configured")
                    return False
                accepted = self._caller.call(f"{plugin.name}.set_state({channel})",
                                             plugin.set_state, channel, value)
        except PluginCallFailedError as e:
            self._logger.error(f"Error setting state for control {control.name}: {e}")
            return False

        if not accepted:
            self._logger.warning(f"Plugin {plugin.name} rejected state {value} for {control.name}")
            return False

        control.state = value
        control.last_updated = utcnow()
        self._controls.save()
        self._logger.info(f"Control {control.name} set to {value}")
        self._announce(control)
        return True

    def apply_reported_state(self, control_id: str, value: Any) -> bool:
        """
        Record a state the hardware reported on its own (e.g. a wall switch
        on a dimmer board). Returns True if the stored state changed.
        """
        self._require_ready()
        control = self._controls.get(control_id)
        value = coerce_state(control.type, value)
        if value == control.state:
            return False
        control.state = value
        control.last_updated = utcnow()
        self._controls.save()
        self._announce(control)
        return True

    def _announce(self, control: Control) -> None:
        self._publisher.publish(CONTROLS_CHANNEL, CONTROL_STATE_CHANGED, {
            'control_id': control.id,
            'state': control.state.to_json(),
            'name': control.name,
        })

    def refresh_all(self) -> List[Control]:
        controls = self.get_all()
        for control in controls:
            try:
                self.get_state(control.id)
            except Exception as e:
                self._logger.error(f"Unexpected error refreshing control {control.name}: {e}")
        return controls
