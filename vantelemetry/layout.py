"""
Placement of new devices on the van diagram.

Coordinates are percentages of the canvas. Each device type starts from
its own anchor and walks a 5x5 grid; grid points that would leave the
[10, 90] margin wrap back into it, so all 25 points stay distinct and at
least one grid unit apart. Points wrap rather than clamp to the margin:
clamping would stack the outer rows and columns on the 90 line.
"""
import math
import random
from typing import Iterable, Optional, Tuple

MIN_DISTANCE = 15.0
GRID_UNIT = 16.0
GRID_SIZE = 5
MARGIN_MIN = 10.0
MARGIN_MAX = 90.0
RANDOM_ATTEMPTS = 100
FALLBACK_JITTER = 5.0

ANCHORS = {
    "Tank": (20.0, 20.0),
    "Control": (60.0, 20.0),
    "ElectricalDevice": (20.0, 60.0),
}
DEFAULT_ANCHOR = (60.0, 60.0)

Point = Tuple[float, float]


def anchor_for(device_type: str) -> Point:
    return ANCHORS.get(device_type, DEFAULT_ANCHOR)


def _wrap(value: float) -> float:
    span = MARGIN_MAX - MARGIN_MIN
    return MARGIN_MIN + ((value - MARGIN_MIN) % span)


def grid_candidates(device_type: str):
    ax, ay = anchor_for(device_type)
    for row in range(GRID_SIZE):
        for col in range(GRID_SIZE):
            yield _wrap(ax + col * GRID_UNIT), _wrap(ay + row * GRID_UNIT)


def is_clear(point: Point, existing: Iterable[Point], min_distance: float = MIN_DISTANCE) -> bool:
    x, y = point
    return all(math.hypot(x - ex, y - ey) >= min_distance for ex, ey in existing)


def place_new_device(existing: Iterable[Point], device_type: str,
                     rng: Optional[random.Random] = None) -> Point:
    """
    Pick a spot for a new device that keeps MIN_DISTANCE from every
    existing position: first the type's grid, then random points, and
    finally the anchor with a little jitter (overlap allowed).
    """
    rng = rng or random.Random()
    taken = list(existing)

    for candidate in grid_candidates(device_type):
        if is_clear(candidate, taken):
            return candidate

    for _ in range(RANDOM_ATTEMPTS):
        candidate = (rng.uniform(MARGIN_MIN, MARGIN_MAX), rng.uniform(MARGIN_MIN, MARGIN_MAX))
        if is_clear(candidate, taken):
            return candidate

    ax, ay = anchor_for(device_type)
    return ax + rng.uniform(0, FALLBACK_JITTER), ay + rng.uniform(0, FALLBACK_JITTER)
