"""Test alert creation, acknowledgement and the tank threshold sweep."""
import pytest

from vantelemetry.exceptions import NotFoundError
from vantelemetry.models import AlertSeverity, Tank, TankType


def add_tank(tank_service, name, tank_type, level, low=10.0, high=90.0):
    tank = tank_service.create(Tank(name=name, type=tank_type, current_level=level,
                                    low_level_threshold=low, high_level_threshold=high))
    return tank


@pytest.fixture
def quiet_tanks(tank_service):
    """Tank service with the default tanks deactivated."""
    for tank in tank_service.get_all():
        tank_service.delete(tank.id)
    return tank_service


@pytest.mark.parametrize("tank_type,level,severity", [
    (TankType.FRESH_WATER, 8.0, AlertSeverity.WARNING),
    (TankType.FRESH_WATER, 4.0, AlertSeverity.CRITICAL),
    (TankType.LPG, 10.0, AlertSeverity.WARNING),
    (TankType.FUEL, 5.0, AlertSeverity.CRITICAL),
    (TankType.WASTE_WATER, 92.0, AlertSeverity.WARNING),
    (TankType.WASTE_WATER, 96.0, AlertSeverity.CRITICAL),
])
def test_threshold_severity(quiet_tanks, alert_service, tank_type, level, severity):
    """Test each tank kind raises the expected severity."""
    tank = add_tank(quiet_tanks, "Tank", tank_type, level)

    raised = alert_service.check_tank_alerts()

    assert len(raised) == 1
    assert raised[0].severity is severity
    assert raised[0].source == tank.id


@pytest.mark.parametrize("tank_type,level", [
    (TankType.FRESH_WATER, 50.0),
    (TankType.FRESH_WATER, 95.0),
    (TankType.WASTE_WATER, 5.0),
    (TankType.WASTE_WATER, 89.0),
])
def test_no_alert_in_normal_range(quiet_tanks, alert_service, tank_type, level):
    """Test levels inside the thresholds raise nothing."""
    add_tank(quiet_tanks, "Tank", tank_type, level)
    assert alert_service.check_tank_alerts() == []


def test_message_format(quiet_tanks, alert_service):
    """Test the message names the tank and the level to one decimal."""
    add_tank(quiet_tanks, "Fresh Water", TankType.FRESH_WATER, 7.25)
    add_tank(quiet_tanks, "Grey", TankType.WASTE_WATER, 93.0)

    messages = sorted(a.message for a in alert_service.check_tank_alerts())
    assert messages == ["Fresh Water level is low: 7.2%", "Grey level is high: 93.0%"]


def test_repeat_sweep_is_deduplicated(quiet_tanks, alert_service):
    """Test the same condition does not stack duplicate alerts."""
    add_tank(quiet_tanks, "LPG", TankType.LPG, 6.0)

    alert_service.check_tank_alerts()
    alert_service.check_tank_alerts()

    assert len(alert_service.get_alerts()) == 1


def test_acknowledged_alert_can_recur(quiet_tanks, alert_service):
    """Test acknowledging lets the same condition alert again."""
    add_tank(quiet_tanks, "LPG", TankType.LPG, 6.0)
    first = alert_service.check_tank_alerts()[0]
    alert_service.acknowledge(first.id)

    second = alert_service.check_tank_alerts()[0]

    assert second.id != first.id
    assert [a.id for a in alert_service.get_alerts()] == [second.id]
    assert len(alert_service.get_alerts(include_acknowledged=True)) == 2


def test_acknowledge_sets_timestamp(alert_service):
    """Test acknowledgement records when it happened."""
    alert = alert_service.create_alert(AlertSeverity.INFO, "system", "Shore power connected")
    acknowledged = alert_service.acknowledge(alert.id)

    assert acknowledged.acknowledged is True
    assert acknowledged.acknowledged_at is not None


def test_newest_first(alert_service):
    """Test alerts are listed newest first."""
    first = alert_service.create_alert(AlertSeverity.INFO, "a", "one")
    second = alert_service.create_alert(AlertSeverity.INFO, "b", "two")
    second.timestamp = first.timestamp.replace(year=first.timestamp.year + 1)

    assert [a.id for a in alert_service.get_alerts()] == [second.id, first.id]


def test_delete_and_unknown_ids(alert_service):
    """Test deleting removes an alert and unknown ids raise NotFoundError."""
    alert = alert_service.create_alert(AlertSeverity.WARNING, "a", "gone soon")
    alert_service.delete(alert.id)

    assert alert_service.get_alerts(include_acknowledged=True) == []
    with pytest.raises(NotFoundError):
        alert_service.acknowledge(alert.id)
    with pytest.raises(NotFoundError):
        alert_service.get_alert("missing")


def test_inactive_tanks_are_ignored(quiet_tanks, alert_service):
    """Test a deleted tank no longer raises alerts."""
    tank = add_tank(quiet_tanks, "Fuel", TankType.FUEL, 2.0)
    quiet_tanks.delete(tank.id)
    assert alert_service.check_tank_alerts() == []
