from enum import Enum


class TankType(Enum):
    FRESH_WATER = "fresh_water"
    WASTE_WATER = "waste_water"
    LPG = "lpg"
    FUEL = "fuel"
    BATTERY = "battery"

    @property
    def is_waste(self) -> bool:
        return self is TankType.WASTE_WATER


class ControlType(Enum):
    TOGGLE = "toggle"
    MOMENTARY = "momentary"
    DIMMER = "dimmer"
    SELECTOR = "selector"


class ElectricalDeviceType(Enum):
    BATTERY = "battery"
    SOLAR_MPPT = "solar_mppt"
    DC_DC_CHARGER = "dc_dc_charger"
    INVERTER = "inverter"
    SHORE_CHARGER = "shore_charger"
    LOAD_OUTPUT = "load_output"
    CONTROLLER = "controller"


class PortType(Enum):
    INPUT = "input"
    OUTPUT = "output"
    BIDIRECTIONAL = "bidirectional"


class EnergyType(Enum):
    DC = "dc"
    AC = "ac"
    SOLAR = "solar"
    DATA = "data"


class AlertSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ToolbarPosition(Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTTOM = "bottom"


class DrivingSide(Enum):
    LEFT = "left"
    RIGHT = "right"


class ThemeMode(Enum):
    MANUAL = "manual"
    BROWSER_AUTO = "browser_auto"
    HEADLIGHTS_AUTO = "headlights_auto"


class Theme(Enum):
    LIGHT = "light"
    DARK = "dark"


def parse_enum(enum_cls, value, default=None):
    """
    Resolve an enum member from its value or name, case-insensitively.
    Accepts "fresh_water", "FRESH_WATER", "FreshWater" for TankType.FRESH_WATER.
    """
    if isinstance(value, enum_cls):
        return value
    if value is None:
        if default is not None:
            return default
        raise ValueError(f"Missing {enum_cls.__name__}")
    text = str(value).strip()
    squashed = text.replace("_", "").replace("-", "").replace(" ", "").lower()
    for member in enum_cls:
        if text == member.value:
            return member
        if squashed in (member.name.replace("_", "").lower(), member.value.replace("_", "").lower()):
            return member
    if default is not None:
        return default
    raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}")
