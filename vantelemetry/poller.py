"""
Fixed-interval refresh and broadcast loop.
"""
import logging
import threading
import time
from typing import Optional

from .interfaces import Publisher
from .services import AlertService, ElectricalDeviceService, ElectricalService, TankService

logger = logging.getLogger("TelemetryPoller")

DEFAULT_INTERVAL = 5.0  # seconds


class TelemetryPoller:
    """
    One cycle:
      1. refresh all tank levels and publish each on "tanks"
      2. refresh the battery summary and device metrics, publish on "electrical"
      3. evaluate tank alerts
      4. publish the unacknowledged alerts on "alerts" when there are any

    Each step is isolated: an exception is logged and the remaining steps
    and later cycles still run.
    """

    def __init__(self, tanks: TankService, alerts: AlertService, publisher: Publisher,
                 electrical: Optional[ElectricalService] = None,
                 devices: Optional[ElectricalDeviceService] = None,
                 interval: float = DEFAULT_INTERVAL):
        self._tanks = tanks
        self._alerts = alerts
        self._publisher = publisher
        self._electrical = electrical
        self._devices = devices
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="telemetry-poller", daemon=True)
        self._thread.start()
        logger.info(f"Telemetry poller started (interval {self._interval}s)")

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self._interval + 5)
        logger.info("Telemetry poller stopped")

    def _loop(self) -> None:
        while not self._stop.is_set():
            started = time.monotonic()
            self.run_cycle()
            elapsed = time.monotonic() - started
            self._stop.wait(max(0.0, self._interval - elapsed))

    def run_cycle(self) -> None:
        self._step("tank refresh", self._publish_tanks)
        self._step("electrical refresh", self._publish_electrical)
        self._step("alert evaluation", self._publish_alerts)
        self.cycles += 1

    @staticmethod
    def _step(name: str, fn) -> None:
        try:
            fn()
        except Exception as e:
            logger.error(f"Error in telemetry {name}: {e}", exc_info=True)

    def _publish_tanks(self) -> None:
        for tank in self._tanks.refresh_all():
            self._publisher.publish("tanks", "tank_level_updated", {
                'id': tank.id,
                'level': round(tank.current_level, 2),
                'name': tank.name,
            })

    def _publish_electrical(self) -> None:
        if self._electrical is not None:
            system = self._electrical.refresh()
            self._publisher.publish("electrical", "electrical_system_updated", system.to_dict())
        if self._devices is not None:
            self._devices.refresh_metrics()
            self._publisher.publish("electrical", "electrical_metrics_updated", {
                'metrics': self._devices.get_all_metrics(),
                'flows': self._devices.get_all_flows(),
            })

    def _publish_alerts(self) -> None:
        self._alerts.check_tank_alerts()
        active = self._alerts.get_alerts(include_acknowledged=False)
        if active:
            self._publisher.publish("alerts", "alerts_updated", [a.to_dict() for a in active])
