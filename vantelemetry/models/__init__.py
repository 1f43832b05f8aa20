from .types import (
    TankType, ControlType, ElectricalDeviceType, PortType, EnergyType,
    AlertSeverity, ToolbarPosition, DrivingSide, ThemeMode, Theme, parse_enum
)
from .values import ControlValue, ValueKind
from .common import utcnow, new_id
from .tank import Tank
from .control import Control
from .electrical import DevicePort, ElectricalDevice, ElectricalConnection, ElectricalSystem
from .alert import Alert
from .position import DevicePosition
from .settings import AlertSettings, SystemConfiguration

__all__ = [
    'TankType', 'ControlType', 'ElectricalDeviceType', 'PortType', 'EnergyType',
    'AlertSeverity', 'ToolbarPosition', 'DrivingSide', 'ThemeMode', 'Theme', 'parse_enum',
    'ControlValue', 'ValueKind',
    'utcnow', 'new_id',
    'Tank',
    'Control',
    'DevicePort', 'ElectricalDevice', 'ElectricalConnection', 'ElectricalSystem',
    'Alert',
    'DevicePosition',
    'AlertSettings', 'SystemConfiguration',
]
