from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .common import clamp_percent, format_timestamp, parse_timestamp
from .types import TankType, parse_enum


@dataclass
class Tank:
    """A fluid or energy reservoir reported as a 0-100 percentage."""
    name: str = ""
    type: TankType = TankType.FRESH_WATER
    current_level: float = 0.0
    capacity: float = 0.0  # liters
    low_level_threshold: float = 10.0
    high_level_threshold: float = 90.0
    sensor_plugin: str = ""
    sensor_configuration: Dict[str, Any] = field(default_factory=dict)
    id: str = ""
    last_updated: Optional[datetime] = None
    is_active: bool = True

    def __setattr__(self, name, value):
        if name == "current_level":
            value = clamp_percent(value)
        super().__setattr__(name, value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type.value,
            'current_level': round(self.current_level, 2),
            'capacity': self.capacity,
            'low_level_threshold': self.low_level_threshold,
            'high_level_threshold': self.high_level_threshold,
            'sensor_plugin': self.sensor_plugin,
            'sensor_configuration': dict(self.sensor_configuration),
            'last_updated': format_timestamp(self.last_updated),
            'is_active': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tank":
        return cls(
            id=str(data.get('id') or ""),
            name=data.get('name', ""),
            type=parse_enum(TankType, data.get('type'), TankType.FRESH_WATER),
            current_level=data.get('current_level') or 0.0,
            capacity=float(data.get('capacity', 0.0)),
            low_level_threshold=float(data.get('low_level_threshold', 10.0)),
            high_level_threshold=float(data.get('high_level_threshold', 90.0)),
            sensor_plugin=data.get('sensor_plugin', ""),
            sensor_configuration=dict(data.get('sensor_configuration') or {}),
            last_updated=parse_timestamp(data.get('last_updated')),
            is_active=bool(data.get('is_active', True)),
        )
