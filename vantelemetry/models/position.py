from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .common import format_timestamp, parse_timestamp


@dataclass
class DevicePosition:
    """Where a device sits on the van diagram, in percent of the canvas."""
    device_id: str
    device_type: str = ""
    x: float = 50.0
    y: float = 50.0
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device_id': self.device_id,
            'device_type': self.device_type,
            'x': self.x,
            'y': self.y,
            'last_updated': format_timestamp(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DevicePosition":
        return cls(
            device_id=str(data.get('device_id') or ""),
            device_type=data.get('device_type', ""),
            x=float(data.get('x', 50.0)),
            y=float(data.get('y', 50.0)),
            last_updated=parse_timestamp(data.get('last_updated')),
        )
