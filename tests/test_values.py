"""Test control value coercion."""
import math

import pytest

from vantelemetry.models import ControlValue, ValueKind
from vantelemetry.models.types import ControlType, TankType, parse_enum


@pytest.mark.parametrize("raw,kind,value", [
    (True, ValueKind.BOOL, True),
    (False, ValueKind.BOOL, False),
    (None, ValueKind.BOOL, False),
    (75, ValueKind.LEVEL, 75),
    (130.4, ValueKind.LEVEL, 100),
    (-3, ValueKind.LEVEL, 0),
    ("false", ValueKind.BOOL, False),
    ("TRUE", ValueKind.BOOL, True),
    ("42", ValueKind.LEVEL, 42),
    ("auto", ValueKind.TEXT, "auto"),
])
def test_parse(raw, kind, value):
    """Test raw values map to the expected kind and value."""
    parsed = ControlValue.parse(raw)
    assert parsed.kind is kind
    assert parsed.value == value


def test_parse_non_finite_is_zero_level():
    """Test NaN and infinity do not leak into a level."""
    assert ControlValue.parse(math.nan) == ControlValue.of_level(0)
    assert ControlValue.parse(math.inf) == ControlValue.of_level(0)
    assert ControlValue.parse("nan").kind is ValueKind.TEXT


def test_parse_is_idempotent():
    """Test parsing a ControlValue returns it unchanged."""
    value = ControlValue.of_level(30)
    assert ControlValue.parse(value) is value


def test_conversions():
    """Test as_bool and as_level across kinds."""
    assert ControlValue.of_level(1).as_bool() is True
    assert ControlValue.of_level(0).as_bool() is False
    assert ControlValue.of_bool(True).as_level() == 100
    assert ControlValue.of_text("garbage").as_bool() is False
    assert ControlValue.of_text("garbage").as_level() == 0
    assert ControlValue.of_text("55.6").as_level() == 56


def test_parse_enum_is_lenient():
    """Test enum parsing ignores case and separators."""
    assert parse_enum(TankType, "FreshWater") is TankType.FRESH_WATER
    assert parse_enum(TankType, "waste_water") is TankType.WASTE_WATER
    assert parse_enum(ControlType, "Dimmer") is ControlType.DIMMER
    assert parse_enum(ControlType, "bogus", ControlType.TOGGLE) is ControlType.TOGGLE
    with pytest.raises(ValueError):
        parse_enum(ControlType, "bogus")
