"""Test automatic placement of new devices on the diagram."""
import itertools
import math
import random

import pytest

from vantelemetry.layout import (
    ANCHORS, DEFAULT_ANCHOR, MARGIN_MAX, MARGIN_MIN, MIN_DISTANCE, grid_candidates, place_new_device
)


def distance(a, b):
    return math.hypot(a[0] - b[0], a[1] - b[1])


def test_first_device_lands_on_anchor():
    """Test an empty diagram places a device at its type's anchor."""
    assert place_new_device([], "Tank") == ANCHORS["Tank"]
    assert place_new_device([], "Control") == ANCHORS["Control"]
    assert place_new_device([], "Something") == DEFAULT_ANCHOR


@pytest.mark.parametrize("device_type", ["Tank", "Control", "ElectricalDevice", "Other"])
def test_grid_points_are_distinct_and_inside_margins(device_type):
    """Test the 25 grid candidates stay in the margins and apart."""
    points = list(grid_candidates(device_type))
    assert len(set(points)) == 25
    for x, y in points:
        assert MARGIN_MIN <= x <= MARGIN_MAX
        assert MARGIN_MIN <= y <= MARGIN_MAX
    for a, b in itertools.combinations(points, 2):
        assert distance(a, b) >= MIN_DISTANCE


@pytest.mark.parametrize("count", [1, 5, 12, 24])
def test_sequential_placements_keep_min_distance(count):
    """Test fewer than 25 same-type devices never crowd each other."""
    placed = []
    for _ in range(count):
        placed.append(place_new_device(placed, "Tank", rng=random.Random(7)))

    for a, b in itertools.combinations(placed, 2):
        assert distance(a, b) >= MIN_DISTANCE


def test_other_types_are_avoided():
    """Test placement keeps its distance from devices of every type."""
    existing = [ANCHORS["Tank"], ANCHORS["Control"], (36.0, 20.0)]

    point = place_new_device(existing, "Tank", rng=random.Random(1))

    assert all(distance(point, e) >= MIN_DISTANCE for e in existing)


def test_crowded_diagram_falls_back_near_anchor():
    """Test a diagram with no room returns a point near the anchor."""
    crowded = [(x, y) for x in range(0, 101, 5) for y in range(0, 101, 5)]

    x, y = place_new_device(crowded, "Control", rng=random.Random(3))

    ax, ay = ANCHORS["Control"]
    assert ax <= x <= ax + 5
    assert ay <= y <= ay + 5


def test_grid_wraps_past_the_margin():
    """Test grid points beyond 90 come back in from the low margin."""
    points = list(grid_candidates("Control"))
    assert (12.0, 20.0) in points
    assert sum(1 for x, _ in points if x == MARGIN_MAX) == 0
