"""
Electrical diagram (devices and the connections between their ports) and
the battery bank summary.
"""
from typing import Any, Dict, List, Optional

from ..exceptions import PersistenceError, PluginCallFailedError, PluginUnavailableError
from ..interfaces import BlobStore
from ..models import ElectricalConnection, ElectricalDevice, ElectricalSystem, new_id, utcnow
from ..plugins.registry import PluginRegistry
from .base import EntityCollection, ManagedService, PluginCaller
from .positions import DevicePositionService

DEVICES_KEY = "electrical-devices.json"
CONNECTIONS_KEY = "electrical-connections.json"
SYSTEM_KEY = "electrical-system.json"

SIMULATED_SENSOR_PLUGIN = "Simulated Sensor Plugin"
FLOW_THRESHOLD_WATTS = 1.0
BATTERY_CAPACITY_AH = 200.0
SOLAR_NOMINAL_VOLTAGE = 18.0


class ElectricalDeviceService(ManagedService):
    """
    CRUD over electrical devices and connections.

    Deleting a device deactivates every connection that references it.
    Metrics are read from each device's data source plugin using its
    data_source_configuration (metric name -> sensor id).
    """

    service_name = "ElectricalDeviceService"

    def __init__(self, store: BlobStore, registry: PluginRegistry,
                 caller: Optional[PluginCaller] = None,
                 positions: Optional[DevicePositionService] = None):
        super().__init__()
        self._registry = registry
        self._caller = caller or PluginCaller()
        self._positions = positions
        self._devices: EntityCollection[ElectricalDevice] = EntityCollection(
            store, DEVICES_KEY, ElectricalDevice, "ElectricalDevice", self._logger,
            serialize=lambda d: d.to_dict(include_metrics=False))
        self._connections: EntityCollection[ElectricalConnection] = EntityCollection(
            store, CONNECTIONS_KEY, ElectricalConnection, "ElectricalConnection", self._logger,
            serialize=lambda c: c.to_dict(include_flow=False))

    def _collections(self):
        return [self._devices, self._connections]

    def _load(self) -> None:
        self._devices.load(list)
        self._connections.load(list)

    # --- devices ---

    def get_all_devices(self) -> List[ElectricalDevice]:
        self._require_ready()
        return self._devices.active()

    def get_device(self, device_id: str) -> ElectricalDevice:
        self._require_ready()
        return self._devices.get(device_id)

    def create_device(self, device: ElectricalDevice) -> ElectricalDevice:
        self._require_ready()
        self._devices.insert(device)
        self._logger.info(f"Created electrical device {device.name} ({device.id})")
        if self._positions is not None:
            self._positions.place_new_device(device.id, "ElectricalDevice")
        return device

    def update_device(self, device: ElectricalDevice) -> ElectricalDevice:
        self._require_ready()
        current = self._devices.get(device.id)
        device.current_metrics = current.current_metrics
        self._devices.put(device, must_exist=True)
        self._logger.info(f"Updated electrical device {device.name} ({device.id})")
        return device

    def delete_device(self, device_id: str) -> None:
        self._require_ready()
        self._devices.soft_delete(device_id)
        cascaded = 0
        with self._connections.lock:
            for connection in self._connections.active():
                if connection.references(device_id):
                    connection.is_active = False
                    connection.last_updated = utcnow()
                    cascaded += 1
        if cascaded:
            self._connections.save()
        self._logger.info(f"Deleted electrical device {device_id} and {cascaded} connection(s)")

    # --- connections ---

    def get_all_connections(self) -> List[ElectricalConnection]:
        self._require_ready()
        return self._connections.active()

    def get_connection(self, connection_id: str) -> ElectricalConnection:
        self._require_ready()
        return self._connections.get(connection_id)

    def create_connection(self, connection: ElectricalConnection) -> ElectricalConnection:
        self._require_ready()
        self._connections.insert(connection)
        self._logger.info(f"Created connection {connection.name} "
                          f"({connection.source_device_id} -> {connection.target_device_id})")
        return connection

    def update_connection(self, connection: ElectricalConnection) -> ElectricalConnection:
        self._require_ready()
        self._connections.put(connection, must_exist=True)
        self._logger.info(f"Updated connection {connection.name} ({connection.id})")
        return connection

    def delete_connection(self, connection_id: str) -> None:
        self._require_ready()
        self._connections.soft_delete(connection_id)
        self._logger.info(f"Deleted connection {connection_id}")

    # --- live data ---

    def refresh_metrics(self) -> None:
        """Read every device's configured metrics, then recompute connection flows."""
        for device in self.get_all_devices():
            try:
                self._refresh_device(device)
            except Exception as e:
                self._logger.error(f"Unexpected error refreshing device {device.name}: {e}")
        self._update_flows()

    def _refresh_device(self, device: ElectricalDevice) -> None:
        if not device.data_source_configuration:
            return
        try:
            plugin = self._registry.sensor(device.data_source_plugin)
        except PluginUnavailableError as e:
            self._logger.warning(f"Device {device.name}: {e}")
            return

        for metric, sensor_id in device.data_source_configuration.items():
            if not isinstance(sensor_id, str):
                continue
            try:
                value = self._caller.call(f"{plugin.name}.read_value({sensor_id})", plugin.read_value, sensor_id)
            except PluginCallFailedError as e:
                self._logger.error(f"Error reading {metric} for device {device.name}: {e}")
                continue
            device.current_metrics[metric] = float(value)

        metrics = device.current_metrics
        if "power" not in device.data_source_configuration and "voltage" in metrics and "current" in metrics:
            metrics["power"] = metrics["voltage"] * metrics["current"]
        device.last_updated = utcnow()

    def _update_flows(self) -> None:
        for connection in self._connections.active():
            source = self._devices.find(connection.source_device_id)
            metrics = source.current_metrics if source else {}
            connection.current_flow = metrics.get("current", 0.0)
            connection.power_flow = metrics.get("power", 0.0)
            connection.is_flowing = abs(connection.power_flow) >= FLOW_THRESHOLD_WATTS

    def get_all_metrics(self) -> Dict[str, Dict[str, float]]:
        return {d.id: dict(d.current_metrics) for d in self.get_all_devices()}

    def get_all_flows(self) -> List[Dict[str, Any]]:
        return [
            {
                'connection_id': c.id,
                'current_flow': round(c.current_flow, 2),
                'power_flow': round(c.power_flow, 1),
                'is_flowing': c.is_flowing,
            }
            for c in self.get_all_connections()
        ]


def default_electrical_system() -> ElectricalSystem:
    return ElectricalSystem(
        id=new_id(),
        name="Main Battery System",
        voltage=12.6,
        current=-5.0,
        power=-63.0,
        state_of_charge=75.0,
        temperature=22.0,
        consumed_amp_hours=25.0,
        time_to_go=36000,
        sensor_plugin=SIMULATED_SENSOR_PLUGIN,
        sensor_configuration={
            "voltage_sensor": "battery_voltage",
            "current_sensor": "battery_current",
            "soc_sensor": "battery_soc",
            "temperature_sensor": "battery_temperature",
            "solar_power_sensor": "solar_power",
        },
        last_updated=utcnow(),
    )


class ElectricalService(ManagedService):
    """Battery bank summary: voltage, current, SOC, solar and derived values."""

    service_name = "ElectricalService"

    SENSOR_KEYS = {
        "voltage": ("voltage_sensor", "battery_voltage"),
        "current": ("current_sensor", "battery_current"),
        "state_of_charge": ("soc_sensor", "battery_soc"),
        "temperature": ("temperature_sensor", "battery_temperature"),
        "solar_power": ("solar_power_sensor", "solar_power"),
    }

    def __init__(self, store: BlobStore, registry: PluginRegistry,
                 caller: Optional[PluginCaller] = None):
        super().__init__()
        self._store = store
        self._registry = registry
        self._caller = caller or PluginCaller()
        self._system: Optional[ElectricalSystem] = None
        self._degraded = False
        self._last_refresh = None

    @property
    def degraded(self) -> bool:
        return self._degraded

    def _load(self) -> None:
        try:
            data = self._store.load(SYSTEM_KEY)
        except PersistenceError as e:
            self._logger.error(f"Error loading electrical system, using defaults: {e}")
            self._degraded = True
            self._system = default_electrical_system()
            return
        if data:
            try:
                self._system = ElectricalSystem.from_dict(data)
            except (TypeError, ValueError, AttributeError) as e:
                self._logger.error(f"Malformed electrical system in {SYSTEM_KEY}, using defaults: {e}")
                self._degraded = True
                self._system = default_electrical_system()
                return
            self._logger.info(f"Loaded electrical system from {SYSTEM_KEY}")
        else:
            self._system = default_electrical_system()
            self._logger.info("Initialized default electrical system")
            self._save()

    def _save(self) -> None:
        try:
            self._store.save(SYSTEM_KEY, self._system.to_dict())
            self._degraded = False
        except PersistenceError as e:
            self._logger.error(f"Error saving electrical system: {e}")
            self._degraded = True

    def get(self) -> ElectricalSystem:
        self._require_ready()
        return self._system

    def update(self, system: ElectricalSystem) -> ElectricalSystem:
        self._require_ready()
        if not system.id:
            system.id = self._system.id
        system.last_updated = utcnow()
        self._system = system
        self._save()
        self._logger.info("Updated electrical system configuration")
        return system

    def _read(self, plugin, sensor_id: str) -> Optional[float]:
        try:
            return float(self._caller.call(f"{plugin.name}.read_value({sensor_id})", plugin.read_value, sensor_id))
        except PluginCallFailedError as e:
            self._logger.error(f"Error reading {sensor_id}: {e}")
            return None

    def refresh(self) -> ElectricalSystem:
        """
        Pull fresh readings; channels that fail keep their previous value.
        Consumed amp-hours integrate the current over the time since the
        previous refresh in this process.
        """
        self._require_ready()
        system = self._system
        try:
            plugin = self._registry.sensor(system.sensor_plugin)
        except PluginUnavailableError as e:
            self._logger.warning(f"Electrical system: {e}")
            return system

        for attr, (config_key, default_sensor) in self.SENSOR_KEYS.items():
            sensor_id = str(system.sensor_configuration.get(config_key) or default_sensor)
            value = self._read(plugin, sensor_id)
            if value is not None:
                setattr(system, attr, value)

        system.power = system.voltage * system.current

        solar_voltage_sensor = system.sensor_configuration.get("solar_voltage_sensor")
        if system.solar_power > 0:
            measured = self._read(plugin, str(solar_voltage_sensor)) if solar_voltage_sensor else None
            system.solar_voltage = measured if measured else SOLAR_NOMINAL_VOLTAGE
            system.solar_current = system.solar_power / system.solar_voltage
        else:
            system.solar_voltage = 0.0
            system.solar_current = 0.0

        now = utcnow()
        if self._last_refresh is not None:
            hours = max(0.0, (now - self._last_refresh).total_seconds()) / 3600.0
            if system.current < 0:
                system.consumed_amp_hours += abs(system.current) * hours
            else:
                system.consumed_amp_hours = max(0.0, system.consumed_amp_hours - system.current * hours)

        capacity = float(system.sensor_configuration.get("capacity_ah", BATTERY_CAPACITY_AH))
        remaining_ah = capacity * system.state_of_charge / 100.0
        if system.current < 0:
            system.time_to_go = int(remaining_ah / abs(system.current) * 3600)
        else:
            system.time_to_go = 0  # charging or idle

        system.last_updated = now
        self._last_refresh = now
        self._logger.debug(f"Refreshed electrical data: {system.voltage:.2f}V, {system.current:.2f}A, "
                           f"{system.power:.2f}W, {system.state_of_charge:.1f}%, "
                           f"solar {system.solar_power:.1f}W")
        return system
