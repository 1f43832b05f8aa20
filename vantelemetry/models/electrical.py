from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .common import format_timestamp, parse_timestamp
from .types import ElectricalDeviceType, EnergyType, PortType, parse_enum


@dataclass
class DevicePort:
    """A connection point on a device card. Position is relative (0-1) to the card."""
    port_id: str = ""
    label: str = ""
    port_type: PortType = PortType.BIDIRECTIONAL
    energy_type: EnergyType = EnergyType.DC
    relative_x: float = 0.5
    relative_y: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            'port_id': self.port_id,
            'label': self.label,
            'port_type': self.port_type.value,
            'energy_type': self.energy_type.value,
            'relative_x': self.relative_x,
            'relative_y': self.relative_y,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DevicePort":
        return cls(
            port_id=data.get('port_id', ""),
            label=data.get('label', ""),
            port_type=parse_enum(PortType, data.get('port_type'), PortType.BIDIRECTIONAL),
            energy_type=parse_enum(EnergyType, data.get('energy_type'), EnergyType.DC),
            relative_x=float(data.get('relative_x', 0.5)),
            relative_y=float(data.get('relative_y', 0.5)),
        )


@dataclass
class ElectricalDevice:
    """
    A node on the electrical diagram (battery, MPPT, inverter...).
    current_metrics is filled at runtime from the data source plugin and is
    never persisted.
    """
    name: str = ""
    device_type: ElectricalDeviceType = ElectricalDeviceType.BATTERY
    configuration: Dict[str, Any] = field(default_factory=dict)
    ports: List[DevicePort] = field(default_factory=list)
    data_source_plugin: str = ""
    data_source_configuration: Dict[str, Any] = field(default_factory=dict)
    current_metrics: Dict[str, float] = field(default_factory=dict)
    id: str = ""
    last_updated: Optional[datetime] = None
    is_active: bool = True

    def to_dict(self, include_metrics: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'device_type': self.device_type.value,
            'configuration': dict(self.configuration),
            'ports': [p.to_dict() for p in self.ports],
            'data_source_plugin': self.data_source_plugin,
            'data_source_configuration': dict(self.data_source_configuration),
            'last_updated': format_timestamp(self.last_updated),
            'is_active': self.is_active,
        }
        if include_metrics:
            data['current_metrics'] = dict(self.current_metrics)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElectricalDevice":
        return cls(
            id=str(data.get('id') or ""),
            name=data.get('name', ""),
            device_type=parse_enum(ElectricalDeviceType, data.get('device_type'),
                                   ElectricalDeviceType.BATTERY),
            configuration=dict(data.get('configuration') or {}),
            ports=[DevicePort.from_dict(p) for p in data.get('ports') or []],
            data_source_plugin=data.get('data_source_plugin', ""),
            data_source_configuration=dict(data.get('data_source_configuration') or {}),
            last_updated=parse_timestamp(data.get('last_updated')),
            is_active=bool(data.get('is_active', True)),
        )


@dataclass
class ElectricalConnection:
    """A wire between two device ports. Flow values are runtime only."""
    name: str = ""
    source_device_id: str = ""
    source_port_id: str = ""
    target_device_id: str = ""
    target_port_id: str = ""
    current_flow: float = 0.0  # A
    power_flow: float = 0.0  # W
    is_flowing: bool = False
    color: str = "#2196F3"
    line_width: float = 2.0
    id: str = ""
    last_updated: Optional[datetime] = None
    is_active: bool = True

    def references(self, device_id: str) -> bool:
        return device_id in (self.source_device_id, self.target_device_id)

    def to_dict(self, include_flow: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'source_device_id': self.source_device_id,
            'source_port_id': self.source_port_id,
            'target_device_id': self.target_device_id,
            'target_port_id': self.target_port_id,
            'color': self.color,
            'line_width': self.line_width,
            'last_updated': format_timestamp(self.last_updated),
            'is_active': self.is_active,
        }
        if include_flow:
            data.update({
                'current_flow': round(self.current_flow, 2),
                'power_flow': round(self.power_flow, 1),
                'is_flowing': self.is_flowing,
            })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElectricalConnection":
        return cls(
            id=str(data.get('id') or ""),
            name=data.get('name', ""),
            source_device_id=str(data.get('source_device_id') or ""),
            source_port_id=data.get('source_port_id', ""),
            target_device_id=str(data.get('target_device_id') or ""),
            target_port_id=data.get('target_port_id', ""),
            color=data.get('color') or "#2196F3",
            line_width=float(data.get('line_width', 2.0)),
            last_updated=parse_timestamp(data.get('last_updated')),
            is_active=bool(data.get('is_active', True)),
        )


@dataclass
class ElectricalSystem:
    """
    Battery bank summary, as reported by a battery monitor.
    current is positive while charging and negative while discharging.
    """
    name: str = "Main Battery"
    voltage: float = 0.0
    current: float = 0.0
    power: float = 0.0
    state_of_charge: float = 0.0
    temperature: float = 0.0
    consumed_amp_hours: float = 0.0
    time_to_go: int = 0  # seconds
    solar_power: float = 0.0
    solar_voltage: float = 0.0
    solar_current: float = 0.0
    ac_input_power: float = 0.0
    ac_output_power: float = 0.0
    sensor_plugin: str = ""
    sensor_configuration: Dict[str, Any] = field(default_factory=dict)
    id: str = ""
    last_updated: Optional[datetime] = None
    is_active: bool = True

    _NUMERIC = (
        'voltage', 'current', 'power', 'state_of_charge', 'temperature',
        'consumed_amp_hours', 'solar_power', 'solar_voltage', 'solar_current',
        'ac_input_power', 'ac_output_power',
    )

    def to_dict(self) -> Dict[str, Any]:
        data = {'id': self.id, 'name': self.name}
        for key in self._NUMERIC:
            data[key] = round(getattr(self, key), 2)
        data.update({
            'time_to_go': self.time_to_go,
            'sensor_plugin': self.sensor_plugin,
            'sensor_configuration': dict(self.sensor_configuration),
            'last_updated': format_timestamp(self.last_updated),
            'is_active': self.is_active,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElectricalSystem":
        system = cls(
            id=str(data.get('id') or ""),
            name=data.get('name') or "Main Battery",
            time_to_go=int(data.get('time_to_go', 0)),
            sensor_plugin=data.get('sensor_plugin', ""),
            sensor_configuration=dict(data.get('sensor_configuration') or {}),
            last_updated=parse_timestamp(data.get('last_updated')),
            is_active=bool(data.get('is_active', True)),
        )
        for key in cls._NUMERIC:
            if data.get(key) is not None:
                setattr(system, key, float(data[key]))
        return system
