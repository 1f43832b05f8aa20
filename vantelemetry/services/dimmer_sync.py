import logging
import threading
import time
from typing import Optional, Set

from ..models import Control, ControlType, ControlValue
from ..plugins.mqtt_dimmer import MqttLedDimmerPlugin, make_control_id
from .controls import ControlService

logger = logging.getLogger("DimmerSync")

STARTUP_DELAY = 5.0
DISCOVERY_INTERVAL = 10.0
STATE_INTERVAL = 5.0
DIMMER_ICON = "mdi-lightbulb-outline"


class DimmerSyncService:
    """
    Keeps Control records in step with the MQTT dimmer discovery cache.

    Discovery pass: every channel of every online board gets a Dimmer
    control, once. State pass: cached brightness that differs from the
    stored state is pushed into the ControlService.
    """

    def __init__(self, plugin: MqttLedDimmerPlugin, controls: ControlService,
                 discovery_interval: float = DISCOVERY_INTERVAL,
                 state_interval: float = STATE_INTERVAL,
                 startup_delay: float = STARTUP_DELAY):
        self._plugin = plugin
        self._controls = controls
        self._discovery_interval = discovery_interval
        self._state_interval = state_interval
        self._startup_delay = startup_delay
        self._registered: Set[str] = set()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="dimmer-sync", daemon=True)
        self._thread.start()
        logger.info("MQTT LED dimmer sync started")

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
        logger.info("MQTT LED dimmer sync stopped")

    def _loop(self) -> None:
        if self._stop.wait(self._startup_delay):
            return
        next_discovery = next_state = time.monotonic()
        while not self._stop.is_set():
            now = time.monotonic()
            if now >= next_discovery:
                self._safe(self.discover_devices)
                next_discovery = now + self._discovery_interval
            if now >= next_state:
                self._safe(self.sync_states)
                next_state = now + self._state_interval
            self._stop.wait(max(0.1, min(next_discovery, next_state) - time.monotonic()))

    @staticmethod
    def _safe(step) -> None:
        try:
            step()
        except Exception as e:
            logger.error(f"Dimmer sync pass failed: {e}")

    def _known_control_ids(self) -> Set[str]:
        known = {c.control_configuration.get("control_id")
                 for c in self._controls.find_by_plugin(self._plugin.name)}
        return known | self._registered

    def discover_devices(self) -> int:
        """Create controls for channels not seen before. Returns how many were added."""
        known = self._known_control_ids()
        added = 0
        for device in self._plugin.get_discovered_devices().values():
            if not device.is_online:
                continue
            device_config = self._plugin.device_config(device.device_id)
            for channel in range(device.channels):
                control_id = make_control_id(device.device_id, channel)
                if control_id in known:
                    continue
                name = f"{device.device_name} - Channel {channel + 1}"
                if device_config and channel in device_config.channel_names:
                    name = device_config.channel_names[channel]
                control = Control(
                    name=name,
                    type=ControlType.DIMMER,
                    state=self._plugin.get_state(control_id),
                    control_plugin=self._plugin.name,
                    control_configuration={
                        "device_id": device.device_id,
                        "channel": channel,
                        "control_id": control_id,
                    },
                    icon_name=DIMMER_ICON,
                )
                self._controls.create(control)
                self._registered.add(control_id)
                known.add(control_id)
                added += 1
                logger.info(f"Registered dimmer control {name} ({control_id})")
        return added

    def sync_states(self) -> int:
        """Push changed channel states into the control records. Returns how many changed."""
        changed = 0
        for control in self._controls.find_by_plugin(self._plugin.name):
            control_id = control.control_configuration.get("control_id")
            if not control_id:
                continue
            value: ControlValue = self._plugin.get_state(control_id)
            if self._controls.apply_reported_state(control.id, value):
                changed += 1
        if changed:
            logger.debug(f"Updated {changed} dimmer control state(s)")
        return changed
