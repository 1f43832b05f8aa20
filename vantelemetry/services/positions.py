from typing import List

from ..exceptions import ValidationError
from ..interfaces import BlobStore
from ..layout import place_new_device
from ..models import DevicePosition, utcnow
from .base import EntityCollection, ManagedService

POSITIONS_KEY = "device-positions.json"


class DevicePositionService(ManagedService):
    """Diagram positions for every device kind, keyed by device id."""

    service_name = "DevicePositionService"

    def __init__(self, store: BlobStore):
        super().__init__()
        self._positions: EntityCollection[DevicePosition] = EntityCollection(
            store, POSITIONS_KEY, DevicePosition, "DevicePosition", self._logger, id_attr="device_id")

    def _collections(self):
        return [self._positions]

    def _load(self) -> None:
        self._positions.load(list)

    def get_all(self) -> List[DevicePosition]:
        self._require_ready()
        return self._positions.values()

    def get(self, device_id: str) -> DevicePosition:
        self._require_ready()
        return self._positions.get(device_id)

    def save(self, position: DevicePosition) -> DevicePosition:
        """Insert or replace the position for position.device_id."""
        self._require_ready()
        if not position.device_id:
            raise ValidationError("device_id is required")
        if not (0 <= position.x <= 100 and 0 <= position.y <= 100):
            raise ValidationError(f"Position ({position.x}, {position.y}) is outside 0-100")
        self._positions.put(position, must_exist=False)
        return position

    def delete(self, device_id: str) -> None:
        self._require_ready()
        self._positions.remove(device_id)
        self._logger.info(f"Removed position for device {device_id}")

    def place_new_device(self, device_id: str, device_type: str) -> DevicePosition:
        """Choose a free spot for a new device and store it."""
        self._require_ready()
        existing = [(p.x, p.y) for p in self._positions.values() if p.device_id != device_id]
        x, y = place_new_device(existing, device_type)
        position = DevicePosition(device_id=device_id, device_type=device_type,
                                  x=round(x, 2), y=round(y, 2), last_updated=utcnow())
        self._positions.put(position, must_exist=False)
        self._logger.info(f"Placed {device_type} {device_id} at ({position.x}, {position.y})")
        return position
