from .base import PluginCaller, EntityCollection, ManagedService
from .tanks import TankService
from .controls import ControlService
from .electrical import ElectricalDeviceService, ElectricalService
from .positions import DevicePositionService
from .settings import SettingsService
from .alerts import AlertService
from .dimmer_sync import DimmerSyncService
from .bundle import ServiceBundle

__all__ = [
    'PluginCaller', 'EntityCollection', 'ManagedService',
    'TankService',
    'ControlService',
    'ElectricalDeviceService', 'ElectricalService',
    'DevicePositionService',
    'SettingsService',
    'AlertService',
    'DimmerSyncService',
    'ServiceBundle',
]
