import logging
import threading
from typing import List

from ..exceptions import NotFoundError
from ..models import Alert, AlertSeverity, TankType, new_id, utcnow
from .tanks import TankService

logger = logging.getLogger("AlertService")

CONSUMABLE_TANKS = (TankType.FRESH_WATER, TankType.LPG, TankType.FUEL, TankType.BATTERY)
WASTE_CRITICAL_LEVEL = 95.0


class AlertService:
    """
    In-memory alert list plus the tank threshold sweep.

    An alert is suppressed while an unacknowledged alert with the same
    (source, message) exists. Messages embed the level to one decimal, so a
    tank that keeps draining produces a new alert at each new reading.
    """

    def __init__(self, tanks: TankService):
        self._tanks = tanks
        self._alerts: List[Alert] = []
        self._lock = threading.Lock()

    def get_alerts(self, include_acknowledged: bool = False) -> List[Alert]:
        with self._lock:
            alerts = [a for a in self._alerts if include_acknowledged or not a.acknowledged]
        return sorted(alerts, key=lambda a: a.timestamp, reverse=True)

    def get_alert(self, alert_id: str) -> Alert:
        with self._lock:
            return self._find(alert_id)

    def create_alert(self, severity: AlertSeverity, source: str, message: str) -> Alert:
        with self._lock:
            for alert in self._alerts:
                if not alert.acknowledged and alert.source == source and alert.message == message:
                    return alert
            alert = Alert(id=new_id(), severity=severity, source=source, message=message, timestamp=utcnow())
            self._alerts.append(alert)
        logger.info(f"Created {severity.value} alert: {message}")
        return alert

    def acknowledge(self, alert_id: str) -> Alert:
        with self._lock:
            alert = self._find(alert_id)
            alert.acknowledged = True
            alert.acknowledged_at = utcnow()
        logger.info(f"Acknowledged alert {alert_id}")
        return alert

    def delete(self, alert_id: str) -> None:
        with self._lock:
            alert = self._find(alert_id)
            self._alerts.remove(alert)
        logger.info(f"Deleted alert {alert_id}")

    def _find(self, alert_id: str) -> Alert:
        # caller holds the lock
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        raise NotFoundError("Alert", alert_id)

    def check_tank_alerts(self) -> List[Alert]:
        """Sweep all active tanks and return the alerts raised (or matched) this pass."""
        raised = []
        for tank in self._tanks.get_all():
            level = tank.current_level
            if tank.type in CONSUMABLE_TANKS:
                if level <= tank.low_level_threshold:
                    severity = (AlertSeverity.CRITICAL if level <= tank.low_level_threshold / 2
                                else AlertSeverity.WARNING)
                    raised.append(self.create_alert(
                        severity, tank.id, f"{tank.name} level is low: {level:.1f}%"))
            elif tank.type is TankType.WASTE_WATER:
                if level >= tank.high_level_threshold:
                    severity = (AlertSeverity.CRITICAL if level >= WASTE_CRITICAL_LEVEL
                                else AlertSeverity.WARNING)
                    raised.append(self.create_alert(
                        severity, tank.id, f"{tank.name} level is high: {level:.1f}%"))
        return raised
