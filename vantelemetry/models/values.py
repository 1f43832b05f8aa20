"""
Control state values.

A control's state is a boolean (toggle, momentary), a 0-100 level
(dimmer, selector) or, for odd hardware, free text. ControlValue keeps the
three apart and owns the coercion rules used at plugin boundaries:

    parse(True)      -> BOOL(True)
    parse(75)        -> LEVEL(75)
    parse(130.4)     -> LEVEL(100)
    parse("false")   -> BOOL(False)
    parse("42")      -> LEVEL(42)
    parse("auto")    -> TEXT("auto")
    parse(None)      -> BOOL(False)

as_bool() and as_level() fall back to False / 0 for text that does not parse.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ValueKind(Enum):
    BOOL = "bool"
    LEVEL = "level"
    TEXT = "text"


def clamp_level(value: float) -> int:
    return int(max(0, min(100, round(value))))


def _parse_number(text: str):
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class ControlValue:
    kind: ValueKind
    value: Union[bool, int, str]

    @classmethod
    def of_bool(cls, value: bool) -> "ControlValue":
        return cls(ValueKind.BOOL, bool(value))

    @classmethod
    def of_level(cls, value: float) -> "ControlValue":
        return cls(ValueKind.LEVEL, clamp_level(value))

    @classmethod
    def of_text(cls, value: str) -> "ControlValue":
        return cls(ValueKind.TEXT, str(value))

    @classmethod
    def parse(cls, raw: Any) -> "ControlValue":
        if isinstance(raw, ControlValue):
            return raw
        if raw is None:
            return cls.of_bool(False)
        # bool is a subclass of int, check it first
        if isinstance(raw, bool):
            return cls.of_bool(raw)
        if isinstance(raw, (int, float)):
            if not math.isfinite(raw):
                return cls.of_level(0)
            return cls.of_level(raw)
        text = str(raw).strip()
        if text.lower() in ("true", "false"):
            return cls.of_bool(text.lower() == "true")
        number = _parse_number(text)
        if number is not None:
            return cls.of_level(number)
        return cls.of_text(text)

    def as_bool(self) -> bool:
        if self.kind is ValueKind.BOOL:
            return bool(self.value)
        if self.kind is ValueKind.LEVEL:
            return self.value != 0
        text = str(self.value).strip().lower()
        if text == "true":
            return True
        number = _parse_number(text)
        return bool(number) if number is not None else False

    def as_level(self) -> int:
        if self.kind is ValueKind.LEVEL:
            return int(self.value)
        if self.kind is ValueKind.BOOL:
            return 100 if self.value else 0
        number = _parse_number(str(self.value).strip())
        return clamp_level(number) if number is not None else 0

    def to_json(self) -> Union[bool, int, str]:
        return self.value

    def __str__(self) -> str:
        return str(self.value)
