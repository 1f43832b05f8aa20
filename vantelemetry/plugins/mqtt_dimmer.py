"""
MQTT LED dimmer integration.

Dimmer boards announce themselves under a base topic:

    {base}/{device}/status               "online" / "offline"
    {base}/{device}/config               JSON: deviceId, deviceName, channels, version, variant
    {base}/{device}/channel/{n}/state    brightness 0-255
    {base}/{device}/heartbeat            JSON: uptime, freeHeap, rssi
    {base}/{device}/channel/{n}/set      <- brightness written by us

Control ids are "{device}-CH{n}". The device id itself may contain dashes.
"""
import copy
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import paho.mqtt.client as mqtt

from ..exceptions import InitializationError
from ..interfaces import ControlPlugin
from ..models.common import utcnow
from ..models.values import ControlValue, clamp_level

logger = logging.getLogger("MqttLedDimmer")

RECONNECT_DELAY = 5  # seconds
BRIGHTNESS_SCALE = 2.55


@dataclass
class DimmerDeviceConfig:
    """A device declared in configuration rather than discovered."""
    device_id: str
    name: str = ""
    channels: int = 8
    icon_prefix: str = "mdi-lightbulb"
    enabled: bool = True
    channel_names: Dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DimmerDeviceConfig":
        return cls(
            device_id=str(data.get('device_id') or data.get('deviceId') or ""),
            name=data.get('name', ""),
            channels=int(data.get('channels', 8)),
            icon_prefix=data.get('icon_prefix', "mdi-lightbulb"),
            enabled=bool(data.get('enabled', True)),
            channel_names={int(k): v for k, v in (data.get('channel_names') or {}).items()},
        )


@dataclass
class DimmerSettings:
    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    base_topic: str = "vandaemon/leddimmer"
    devices: List[DimmerDeviceConfig] = field(default_factory=list)
    auto_discovery: bool = True
    discovery_timeout_seconds: int = 30

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DimmerSettings":
        try:
            return cls(
                broker=data.get('broker', "localhost"),
                port=int(data.get('port', 1883)),
                username=data.get('username') or None,
                password=data.get('password') or None,
                base_topic=str(data.get('base_topic', "vandaemon/leddimmer")).rstrip('/'),
                devices=[DimmerDeviceConfig.from_dict(d) for d in data.get('devices') or []],
                auto_discovery=bool(data.get('auto_discovery', True)),
                discovery_timeout_seconds=int(data.get('discovery_timeout_seconds', 30)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise InitializationError(f"Invalid MQTT LED dimmer configuration: {e}") from e


@dataclass
class DimmerDeviceInfo:
    """What we currently know about one dimmer board."""
    device_id: str
    device_name: str = ""
    channels: int = 0
    version: Optional[str] = None
    variant: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None
    channel_states: Dict[int, int] = field(default_factory=dict)  # brightness 0-255

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device_id': self.device_id,
            'device_name': self.device_name,
            'channels': self.channels,
            'version': self.version,
            'variant': self.variant,
            'is_online': self.is_online,
            'last_seen': self.last_seen.isoformat() if self.last_seen else None,
            'channel_states': dict(self.channel_states),
        }


def parse_control_id(control_id: str) -> Optional[Tuple[str, int]]:
    """'van-dimmer-01-CH3' -> ('van-dimmer-01', 3). None when malformed."""
    device_id, _, suffix = (control_id or "").rpartition('-')
    if not device_id or not suffix.startswith("CH") or not suffix[2:].isdigit():
        return None
    return device_id, int(suffix[2:])


def make_control_id(device_id: str, channel: int) -> str:
    return f"{device_id}-CH{channel}"


def percent_to_brightness(percent: int) -> int:
    return int(round(clamp_level(percent) * BRIGHTNESS_SCALE))


def brightness_to_percent(brightness: int) -> int:
    return clamp_level(round(brightness / BRIGHTNESS_SCALE))


def _default_client_factory(client_id: str):
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )


class MqttLedDimmerPlugin(ControlPlugin):
    """
    Dimmer channels on MQTT-connected LED boards.

    The paho network loop runs in its own thread and reconnects on its own;
    incoming messages only update the discovery cache. get_state never
    touches the network.
    """

    def __init__(self, client_factory: Callable[[str], Any] = _default_client_factory):
        self._client_factory = client_factory
        self._client = None
        self._settings = DimmerSettings()
        self._devices: Dict[str, DimmerDeviceInfo] = {}
        self._lock = threading.Lock()
        self._connected = False

    @property
    def name(self) -> str:
        return "MQTT LED Dimmer"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def settings(self) -> DimmerSettings:
        return self._settings

    # --- lifecycle ---

    def initialize(self, config: Dict[str, Any]) -> None:
        logger.info("Initializing MQTT LED Dimmer plugin...")
        self._settings = DimmerSettings.from_dict(config)
        s = self._settings
        logger.info(f"MQTT Broker: {s.broker}:{s.port}")
        logger.info(f"Auto-discovery: {s.auto_discovery}")
        logger.info(f"Configured devices: {len(s.devices)}")

        with self._lock:
            for dev in s.devices:
                if dev.enabled and dev.device_id:
                    self._devices.setdefault(dev.device_id, DimmerDeviceInfo(
                        device_id=dev.device_id,
                        device_name=dev.name or dev.device_id,
                        channels=dev.channels,
                    ))

        client = self._client_factory(f"vantelemetry-leddimmer-{uuid.uuid4().hex}")
        if s.username:
            client.username_pw_set(s.username, s.password)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        client.reconnect_delay_set(min_delay=RECONNECT_DELAY, max_delay=RECONNECT_DELAY)
        try:
            client.connect_async(s.broker, s.port, keepalive=60)
            client.loop_start()
        except (OSError, ValueError) as e:
            raise InitializationError(f"Could not start MQTT client for {s.broker}:{s.port}: {e}") from e
        self._client = client
        logger.info("MQTT client started")

    def test_connection(self) -> bool:
        if self._client is None:
            return False
        connected = bool(self._client.is_connected())
        logger.info(f"MQTT connection test: {'SUCCESS' if connected else 'FAILED'}")
        return connected

    def close(self) -> None:
        logger.info("Disposing MQTT LED Dimmer plugin")
        if self._client is not None:
            self._client.loop_stop()
            self._client.disconnect()
            self._client = None

    # --- paho callbacks ---

    def subscription_topics(self) -> List[str]:
        base = self._settings.base_topic
        return [
            f"{base}/+/status",
            f"{base}/+/config",
            f"{base}/+/channel/+/state",
            f"{base}/+/heartbeat",
        ]

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            return
        self._connected = True
        logger.info("Connected to MQTT broker")
        topics = self.subscription_topics()
        client.subscribe([(t, 0) for t in topics])
        logger.info(f"Subscribed to {len(topics)} topics")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected = False
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")

    def _on_message(self, client, userdata, msg):
        self.handle_message(msg.topic, msg.payload)

    def handle_message(self, topic: str, payload) -> None:
        """Route one incoming message into the discovery cache."""
        try:
            text = payload.decode('utf-8') if isinstance(payload, (bytes, bytearray)) else str(payload)
            prefix = self._settings.base_topic + '/'
            if not topic.startswith(prefix):
                return
            parts = topic[len(prefix):].split('/')
            if len(parts) < 2:
                return
            device_id = parts[0]

            if len(parts) == 2 and parts[1] == "status":
                self._handle_status(device_id, text)
            elif len(parts) == 2 and parts[1] == "config":
                self._handle_config(device_id, text)
            elif len(parts) == 4 and parts[1] == "channel" and parts[3] == "state":
                self._handle_channel_state(device_id, parts[2], text)
            elif len(parts) == 2 and parts[1] == "heartbeat":
                self._handle_heartbeat(device_id, text)
        except Exception as e:
            logger.error(f"Error processing MQTT message on {topic}: {e}")

    def _handle_status(self, device_id: str, text: str) -> None:
        is_online = text.strip().lower() == "online"
        with self._lock:
            device = self._devices.get(device_id)
            if device is not None:
                device.is_online = is_online
                device.last_seen = utcnow()
                logger.info(f"Device {device_id} is now {text.strip()}")
            elif is_online:
                self._devices[device_id] = DimmerDeviceInfo(
                    device_id=device_id, device_name=device_id, is_online=True, last_seen=utcnow())
                logger.info(f"New device discovered: {device_id}")

    def _handle_config(self, device_id: str, text: str) -> None:
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.error(f"Failed to parse device config for {device_id}: {e}")
            return
        with self._lock:
            device = self._devices.get(device_id) or DimmerDeviceInfo(device_id=device_id)
            device.device_name = data.get('deviceName') or device.device_name or device_id
            device.channels = int(data.get('channels', device.channels))
            device.version = data.get('version', device.version)
            device.variant = data.get('variant', device.variant)
            device.is_online = True
            device.last_seen = utcnow()
            self._devices[device_id] = device
        logger.info(f"Device config received: {device_id} ({device.device_name}), "
                    f"{device.channels} channels, version {device.version}")

    def _handle_channel_state(self, device_id: str, channel_text: str, text: str) -> None:
        try:
            channel = int(channel_text)
            brightness = int(text.strip())
        except ValueError:
            logger.warning(f"Ignoring channel state '{text}' for {device_id}/{channel_text}")
            return
        with self._lock:
            device = self._devices.get(device_id)
            if device is not None:
                device.channel_states[channel] = max(0, min(255, brightness))
        logger.debug(f"Device {device_id} channel {channel} brightness {brightness}")

    def _handle_heartbeat(self, device_id: str, text: str) -> None:
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.error(f"Failed to parse heartbeat for {device_id}: {e}")
            return
        with self._lock:
            device = self._devices.get(device_id)
            if device is not None:
                device.last_seen = utcnow()
        logger.debug(f"Heartbeat from {device_id}: uptime={data.get('uptime')}s rssi={data.get('rssi')}")

    # --- control contract ---

    def set_state(self, control_id: str, value: ControlValue) -> bool:
        if self._client is None or not self._client.is_connected():
            logger.warning("Cannot set state: MQTT client not connected")
            return False
        parsed = parse_control_id(control_id)
        if parsed is None:
            logger.warning(f"Malformed dimmer control id: {control_id}")
            return False
        device_id, channel = parsed

        brightness = percent_to_brightness(ControlValue.parse(value).as_level())
        topic = f"{self._settings.base_topic}/{device_id}/channel/{channel}/set"
        try:
            info = self._client.publish(topic, str(brightness), qos=1)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to set state for {control_id}: {e}")
            return False
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Failed to publish to {topic}: rc={info.rc}")
            return False

        # Optimistic until the board echoes the state topic
        with self._lock:
            device = self._devices.get(device_id)
            if device is not None:
                device.channel_states[channel] = brightness
        logger.info(f"Set {control_id} to {brightness}")
        return True

    def get_state(self, control_id: str) -> ControlValue:
        parsed = parse_control_id(control_id)
        if parsed is None:
            return ControlValue.of_level(0)
        device_id, channel = parsed
        with self._lock:
            device = self._devices.get(device_id)
            brightness = device.channel_states.get(channel) if device else None
        if brightness is None:
            return ControlValue.of_level(0)
        return ControlValue.of_level(brightness_to_percent(brightness))

    def get_discovered_devices(self) -> Dict[str, DimmerDeviceInfo]:
        with self._lock:
            return copy.deepcopy(self._devices)

    def device_config(self, device_id: str) -> Optional[DimmerDeviceConfig]:
        for dev in self._settings.devices:
            if dev.device_id == device_id:
                return dev
        return None
