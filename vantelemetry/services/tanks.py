from typing import List, Optional

from ..exceptions import PluginCallFailedError, PluginUnavailableError
from ..interfaces import BlobStore
from ..models import Tank, TankType, new_id, utcnow
from ..plugins.registry import PluginRegistry
from .base import EntityCollection, ManagedService, PluginCaller
from .positions import DevicePositionService

TANKS_KEY = "tanks.json"
SIMULATED_SENSOR_PLUGIN = "Simulated Sensor Plugin"


def default_tanks() -> List[Tank]:
    now = utcnow()
    return [
        Tank(id=new_id(), name="Fresh Water", type=TankType.FRESH_WATER, current_level=75.0,
             capacity=100.0, sensor_plugin=SIMULATED_SENSOR_PLUGIN,
             sensor_configuration={"sensor_id": "fresh_water"}, last_updated=now),
        Tank(id=new_id(), name="Waste Water", type=TankType.WASTE_WATER, current_level=25.0,
             capacity=80.0, sensor_plugin=SIMULATED_SENSOR_PLUGIN,
             sensor_configuration={"sensor_id": "waste_water"}, last_updated=now),
        Tank(id=new_id(), name="LPG", type=TankType.LPG, current_level=60.0,
             capacity=30.0, sensor_plugin=SIMULATED_SENSOR_PLUGIN,
             sensor_configuration={"sensor_id": "lpg"}, last_updated=now),
    ]


class TankService(ManagedService):
    """Tank records plus level reads through each tank's sensor plugin."""

    service_name = "TankService"

    def __init__(self, store: BlobStore, registry: PluginRegistry,
                 caller: Optional[PluginCaller] = None,
                 positions: Optional[DevicePositionService] = None):
        super().__init__()
        self._registry = registry
        self._caller = caller or PluginCaller()
        self._positions = positions
        self._tanks: EntityCollection[Tank] = EntityCollection(
            store, TANKS_KEY, Tank, "Tank", self._logger)

    def _collections(self):
        return [self._tanks]

    def _load(self) -> None:
        self._tanks.load(default_tanks)

    def get_all(self) -> List[Tank]:
        self._require_ready()
        return self._tanks.active()

    def get_by_id(self, tank_id: str) -> Tank:
        self._require_ready()
        return self._tanks.get(tank_id)

    def create(self, tank: Tank) -> Tank:
        self._require_ready()
        self._tanks.insert(tank)
        self._logger.info(f"Created tank {tank.id} ({tank.name})")
        if self._positions is not None:
            self._positions.place_new_device(tank.id, "Tank")
        return tank

    def update(self, tank: Tank) -> Tank:
        self._require_ready()
        self._tanks.put(tank, must_exist=False)
        self._logger.info(f"Updated tank {tank.id} ({tank.name})")
        return tank

    def delete(self, tank_id: str) -> None:
        self._require_ready()
        self._tanks.soft_delete(tank_id)
        self._logger.info(f"Deleted tank {tank_id}")

    def refresh_level(self, tank_id: str) -> float:
        """
        Read the tank's sensor and store the result. Any plugin problem is
        logged and the cached level is returned unchanged.
        """
        self._require_ready()
        tank = self._tanks.get(tank_id)

        try:
            plugin = self._registry.sensor(tank.sensor_plugin)
        except PluginUnavailableError as e:
            self._logger.warning(f"Tank {tank.name}: {e}")
            return tank.current_level

        sensor_id = tank.sensor_configuration.get("sensor_id")
        if not sensor_id:
            self._logger.warning(f"Tank {tank.name} has no sensor_id configured")
            return tank.current_level

        try:
            value = self._caller.call(f"{plugin.name}.read_value({sensor_id})", plugin.read_value, sensor_id)
        except PluginCallFailedError as e:
            self._logger.error(f"Error reading level for tank {tank.name}: {e}")
            return tank.current_level

        tank.current_level = value
        tank.last_updated = utcnow()
        return tank.current_level

    def refresh_all(self) -> List[Tank]:
        """Refresh every active tank, one after another."""
        tanks = self.get_all()
        for tank in tanks:
            try:
                self.refresh_level(tank.id)
            except Exception as e:
                self._logger.error(f"Unexpected error refreshing tank {tank.name}: {e}")
        return tanks
