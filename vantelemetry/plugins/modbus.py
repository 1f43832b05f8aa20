"""
Modbus TCP relay/register control.

Each control carries its own target in its configuration map:

    ip_address:     "192.168.1.50" or "192.168.1.50:5020"
    register:       0-based coil or holding register address
    register_type:  "Coil" or "HoldingRegister"
    device_type:    optional preset name, overrides register_type

A short-lived client is opened per call. Every failure is logged and
reported as False, never raised.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from pymodbus.client import ModbusTcpClient

from ..exceptions import InitializationError
from ..interfaces import ConfiguredControlPlugin
from ..models.values import ControlValue

logger = logging.getLogger("ModbusPlugin")

DEFAULT_MODBUS_PORT = 502
CONNECTION_TIMEOUT = 5.0  # seconds

COIL = "coil"
HOLDING_REGISTER = "holdingregister"


@dataclass(frozen=True)
class DevicePreset:
    name: str
    register_type: str
    register_offset: int = 0
    channel_count: int = 1
    description: str = ""


DEVICE_PRESETS: Dict[str, DevicePreset] = {
    "Waveshare8Relay": DevicePreset(
        name="Waveshare 8-Channel PoE Relay",
        register_type="Coil",
        channel_count=8,
        description="Waveshare Modbus PoE ETH Relay (8 channels)",
    ),
}


def parse_modbus_address(address: str, default_port: int = DEFAULT_MODBUS_PORT) -> Tuple[str, int]:
    """Split "host[:port]"; a missing or malformed port falls back to default_port."""
    if not address or not str(address).strip():
        raise ValueError("Modbus address cannot be empty")
    host, _, port_text = str(address).strip().partition(':')
    try:
        port = int(port_text) if port_text else default_port
    except ValueError:
        port = default_port
    return host.strip(), port


class ModbusControlPlugin(ConfiguredControlPlugin):
    """Boolean outputs on Modbus TCP coils or holding registers."""

    def __init__(self, client_factory: Callable[..., Any] = ModbusTcpClient):
        self._client_factory = client_factory
        self._controls: Dict[str, Dict[str, Any]] = {}
        self._timeout = CONNECTION_TIMEOUT

    @property
    def name(self) -> str:
        return "Modbus Control Plugin"

    @property
    def version(self) -> str:
        return "1.0.0"

    def initialize(self, config: Dict[str, Any]) -> None:
        """
        Optional keys:
            timeout:  per-call timeout in seconds
            controls: control_id -> target configuration, for callers that
                      only know a control id
        """
        logger.info(f"Initializing {self.name} v{self.version}")
        logger.info(f"Supported device presets: {', '.join(DEVICE_PRESETS)}")
        try:
            self._timeout = float(config.get("timeout", CONNECTION_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise InitializationError(f"Invalid Modbus timeout: {config.get('timeout')!r}") from e
        controls = config.get("controls") or {}
        if not isinstance(controls, dict):
            raise InitializationError("Modbus 'controls' must be a mapping of control id to target")
        self._controls = {str(k): dict(v) for k, v in controls.items()}

    def test_connection(self) -> bool:
        targets = {str(c.get("ip_address")) for c in self._controls.values() if c.get("ip_address")}
        if not targets:
            return True
        ok = True
        for address in targets:
            try:
                host, port = parse_modbus_address(address)
                client = self._client_factory(host, port=port, timeout=self._timeout)
                try:
                    ok = bool(client.connect()) and ok
                finally:
                    client.close()
            except Exception as e:
                logger.error(f"Modbus connection test to {address} failed: {e}")
                ok = False
        return ok

    def set_state(self, control_id: str, value: ControlValue) -> bool:
        if not control_id:
            logger.warning("Control ID is null or empty")
            return False
        config = self._controls.get(control_id)
        if config is None:
            logger.warning(f"No Modbus target configured for control {control_id}")
            return False
        return self.set_state_with_config(config, value)

    def get_state(self, control_id: str) -> ControlValue:
        config = self._controls.get(control_id)
        if config is None:
            logger.warning(f"No Modbus target configured for control {control_id}")
            return ControlValue.of_bool(False)
        return self.get_state_with_config(config)

    def _resolve(self, config: Dict[str, Any]) -> Tuple[str, int, int, str]:
        host, port = parse_modbus_address(config.get("ip_address", ""))
        if config.get("port"):
            port = int(config["port"])
        register = int(config.get("register", 0))
        register_type = str(config.get("register_type", "Coil"))
        preset = DEVICE_PRESETS.get(config.get("device_type") or "")
        if preset:
            logger.debug(f"Using device preset: {preset.name}")
            register_type = preset.register_type
            register += preset.register_offset
        return host, port, register, register_type.replace("_", "").lower()

    def _connect(self, host: str, port: int):
        client = self._client_factory(host, port=port, timeout=self._timeout)
        if not client.connect():
            client.close()
            raise ConnectionError(f"Could not connect to {host}:{port}")
        return client

    def set_state_with_config(self, config: Dict[str, Any], value: ControlValue) -> bool:
        value = ControlValue.parse(value)
        try:
            host, port, register, register_type = self._resolve(config)
            on = value.as_bool()
            if register_type not in (COIL, HOLDING_REGISTER):
                logger.warning(f"Unsupported register type: {config.get('register_type')}")
                return False

            logger.info(f"Writing to Modbus device at {host}:{port}, register={register}, "
                        f"type={register_type}, state={on}")
            client = self._connect(host, port)
            try:
                if register_type == COIL:
                    result = client.write_coil(register, on)
                else:
                    result = client.write_register(register, 1 if on else 0)
            finally:
                client.close()

            if result.isError():
                logger.error(f"Modbus write rejected at {host}:{port} register {register}: {result}")
                return False
            return True
        except Exception as e:
            logger.error(f"Failed to set Modbus state at {config.get('ip_address')}, "
                         f"register {config.get('register')}: {e}")
            return False

    def get_state_with_config(self, config: Dict[str, Any]) -> ControlValue:
        try:
            host, port, register, register_type = self._resolve(config)
            if register_type not in (COIL, HOLDING_REGISTER):
                logger.warning(f"Unsupported register type: {config.get('register_type')}")
                return ControlValue.of_bool(False)

            client = self._connect(host, port)
            try:
                if register_type == COIL:
                    result = client.read_coils(register, count=1)
                else:
                    result = client.read_holding_registers(register, count=1)
            finally:
                client.close()

            if result.isError():
                logger.error(f"Modbus read rejected at {host}:{port} register {register}: {result}")
                return ControlValue.of_bool(False)
            if register_type == COIL:
                return ControlValue.of_bool(bool(result.bits[0]))
            return ControlValue.of_bool(result.registers[0] != 0)
        except Exception as e:
            logger.error(f"Failed to read Modbus state at {config.get('ip_address')}, "
                         f"register {config.get('register')}: {e}")
            return ControlValue.of_bool(False)
