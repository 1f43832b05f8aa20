from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .common import format_timestamp, parse_timestamp
from .types import ControlType, parse_enum
from .values import ControlValue


@dataclass
class Control:
    """A switchable or dimmable output (lights, pump, heater...)."""
    name: str = ""
    type: ControlType = ControlType.TOGGLE
    state: ControlValue = field(default_factory=lambda: ControlValue.of_bool(False))
    control_plugin: str = ""
    control_configuration: Dict[str, Any] = field(default_factory=dict)
    icon_name: str = ""
    id: str = ""
    last_updated: Optional[datetime] = None
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type.value,
            'state': self.state.to_json(),
            'control_plugin': self.control_plugin,
            'control_configuration': dict(self.control_configuration),
            'icon_name': self.icon_name,
            'last_updated': format_timestamp(self.last_updated),
            'is_active': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Control":
        return cls(
            id=str(data.get('id') or ""),
            name=data.get('name', ""),
            type=parse_enum(ControlType, data.get('type'), ControlType.TOGGLE),
            state=ControlValue.parse(data.get('state')),
            control_plugin=data.get('control_plugin', ""),
            control_configuration=dict(data.get('control_configuration') or {}),
            icon_name=data.get('icon_name', ""),
            last_updated=parse_timestamp(data.get('last_updated')),
            is_active=bool(data.get('is_active', True)),
        )
