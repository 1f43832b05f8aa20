"""
Simulated hardware for development and demos.

Sensor readings are a pure function of (start time, now): every channel
runs a fixed-length cycle from the moment initialize() was called, with a
little uniform jitter on top. Nothing accumulates between reads.
"""
import logging
import math
import random
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..interfaces import ControlPlugin, SensorPlugin
from ..models.values import ControlValue

logger = logging.getLogger("SimulatedPlugins")

CYCLE_SECONDS = 120.0
LEVEL_JITTER = 0.5

# Tank-style channels, 0-100 %
DRAINING_SENSORS = ("fresh_water", "lpg", "fuel", "battery", "battery_soc")
FILLING_SENSORS = ("waste_water",)


def _battery_voltage(phase: float) -> float:
    # Follows the draining SOC: 13.0 V full, 11.8 V empty
    return 11.8 + 1.2 * (1.0 - phase)


def _battery_current(phase: float) -> float:
    return -8.0 + 12.0 * math.sin(math.pi * phase)


def _battery_temperature(phase: float) -> float:
    return 22.5 + 2.5 * math.sin(2 * math.pi * phase)


def _solar_power(phase: float) -> float:
    return 400.0 * math.sin(math.pi * phase)


# name -> (waveform, jitter, floor)
SPECIAL_SENSORS: Dict[str, tuple] = {
    "battery_voltage": (_battery_voltage, 0.05, None),
    "battery_current": (_battery_current, 0.2, None),
    "battery_temperature": (_battery_temperature, 0.1, None),
    "solar_power": (_solar_power, 5.0, 0.0),
}


class SimulatedSensorPlugin(SensorPlugin):
    """Sawtooth tank levels plus a few battery/solar channels."""

    def __init__(self, clock: Callable[[], float] = time.time, rng: Optional[random.Random] = None):
        self._clock = clock
        self._rng = rng or random.Random()
        self._cycle = CYCLE_SECONDS
        self._start_times: Dict[str, float] = {}

    @property
    def name(self) -> str:
        return "Simulated Sensor Plugin"

    @property
    def version(self) -> str:
        return "1.0.0"

    def initialize(self, config: Dict[str, Any]) -> None:
        logger.info(f"Initializing {self.name} v{self.version}")
        self._cycle = float(config.get("cycle_seconds", CYCLE_SECONDS))
        now = self._clock()
        for sensor_id in DRAINING_SENSORS + FILLING_SENSORS + tuple(SPECIAL_SENSORS):
            self._start_times[sensor_id] = now

    def test_connection(self) -> bool:
        return True

    def phase(self, sensor_id: str) -> float:
        """Position in the current cycle, 0.0 <= phase < 1.0."""
        elapsed = self._clock() - self._start_times[sensor_id]
        return (elapsed % self._cycle) / self._cycle

    def read_value(self, sensor_id: str) -> float:
        if sensor_id not in self._start_times:
            logger.warning(f"Sensor {sensor_id} not found, returning 0")
            return 0.0

        phase = self.phase(sensor_id)
        if sensor_id in SPECIAL_SENSORS:
            waveform, jitter, floor = SPECIAL_SENSORS[sensor_id]
            value = waveform(phase) + self._rng.uniform(-jitter, jitter)
            if floor is not None:
                value = max(floor, value)
        else:
            base = 100.0 * phase if sensor_id in FILLING_SENSORS else 100.0 * (1.0 - phase)
            value = base + self._rng.uniform(-LEVEL_JITTER, LEVEL_JITTER)
            value = max(0.0, min(100.0, value))

        logger.debug(f"Read sensor {sensor_id}: {value:.2f}")
        return value

    def read_all_values(self) -> Dict[str, float]:
        return {sensor_id: self.read_value(sensor_id) for sensor_id in list(self._start_times)}


class SimulatedControlPlugin(ControlPlugin):
    """Keeps control states in memory and accepts every write."""

    DEFAULT_STATES = {
        "light_main": ControlValue.of_bool(False),
        "light_dimmer": ControlValue.of_level(0),
        "water_pump": ControlValue.of_bool(False),
        "heater": ControlValue.of_bool(False),
    }

    def __init__(self):
        self._states: Dict[str, ControlValue] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "Simulated Control Plugin"

    @property
    def version(self) -> str:
        return "1.0.0"

    def initialize(self, config: Dict[str, Any]) -> None:
        logger.info(f"Initializing {self.name} v{self.version}")
        with self._lock:
            self._states = dict(self.DEFAULT_STATES)

    def test_connection(self) -> bool:
        return True

    def set_state(self, control_id: str, value: ControlValue) -> bool:
        logger.info(f"Setting control {control_id} to {value}")
        with self._lock:
            self._states[control_id] = value
        return True

    def get_state(self, control_id: str) -> ControlValue:
        with self._lock:
            state = self._states.get(control_id)
        if state is None:
            logger.warning(f"Control {control_id} not found, returning default state")
            return ControlValue.of_bool(False)
        return state
