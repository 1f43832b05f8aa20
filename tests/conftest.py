"""Fixtures for testing."""
import random

import pytest

from vantelemetry.persistence import InMemoryStore
from vantelemetry.plugins import PluginRegistry, SimulatedControlPlugin, SimulatedSensorPlugin
from vantelemetry.services import (
    AlertService, ControlService, DevicePositionService, ElectricalDeviceService,
    ElectricalService, PluginCaller, ServiceBundle, SettingsService, TankService
)


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class NoJitter(random.Random):
    """Random source whose uniform() always returns the midpoint."""

    def uniform(self, a, b):
        return (a + b) / 2.0


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, channel, event, payload):
        self.events.append((channel, event, payload))

    def on(self, channel):
        return [e for e in self.events if e[0] == channel]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sensor_plugin(clock):
    plugin = SimulatedSensorPlugin(clock=clock, rng=NoJitter())
    plugin.initialize({})
    return plugin


@pytest.fixture
def control_plugin():
    plugin = SimulatedControlPlugin()
    plugin.initialize({})
    return plugin


@pytest.fixture
def registry(sensor_plugin, control_plugin):
    registry = PluginRegistry()
    registry.register(sensor_plugin)
    registry.register(control_plugin)
    return registry


@pytest.fixture
def caller():
    caller = PluginCaller(timeout=1.0)
    yield caller
    caller.shutdown()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def positions(store):
    service = DevicePositionService(store)
    service.start()
    return service


@pytest.fixture
def tank_service(store, registry, caller, positions):
    service = TankService(store, registry, caller=caller, positions=positions)
    service.start()
    return service


@pytest.fixture
def control_service(store, registry, caller, publisher, positions):
    service = ControlService(store, registry, caller=caller, publisher=publisher, positions=positions)
    service.start()
    return service


@pytest.fixture
def device_service(store, registry, caller, positions):
    service = ElectricalDeviceService(store, registry, caller=caller, positions=positions)
    service.start()
    return service


@pytest.fixture
def electrical_service(store, registry, caller):
    service = ElectricalService(store, registry, caller=caller)
    service.start()
    return service


@pytest.fixture
def alert_service(tank_service):
    return AlertService(tank_service)


@pytest.fixture
def services(store, registry, caller, publisher):
    positions = DevicePositionService(store)
    tanks = TankService(store, registry, caller=caller, positions=positions)
    bundle = ServiceBundle(
        tanks=tanks,
        controls=ControlService(store, registry, caller=caller, publisher=publisher, positions=positions),
        alerts=AlertService(tanks),
        electrical=ElectricalService(store, registry, caller=caller),
        devices=ElectricalDeviceService(store, registry, caller=caller, positions=positions),
        positions=positions,
        settings=SettingsService(store),
    )
    bundle.start_all()
    return bundle
