from dataclasses import dataclass
from typing import List, Optional

from .alerts import AlertService
from .controls import ControlService
from .electrical import ElectricalDeviceService, ElectricalService
from .positions import DevicePositionService
from .settings import SettingsService
from .tanks import TankService


@dataclass
class ServiceBundle:
    """Everything the REST layer and the poller need, wired once in main."""
    tanks: TankService
    controls: ControlService
    alerts: AlertService
    electrical: ElectricalService
    devices: ElectricalDeviceService
    positions: DevicePositionService
    settings: SettingsService

    def managed(self) -> List:
        # positions must be ready before the services that place into it
        return [self.positions, self.tanks, self.controls, self.devices, self.electrical, self.settings]

    def start_all(self) -> None:
        for service in self.managed():
            service.start()

    def degraded_services(self) -> List[str]:
        return [s.service_name for s in self.managed() if s.degraded]

    def not_ready(self) -> Optional[List[str]]:
        pending = [s.service_name for s in self.managed() if not s.ready]
        return pending or None
