"""Script values: the tagged union every stack slot, alias body and result holds."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .bytecode import Program
    from .idents import Ident


class ValueType(IntEnum):
    # Runtime result types (fit in the two return-type bits)
    NULL = 0
    INTEGER = 1
    FLOAT = 2
    STRING = 3
    # Compile-time word types and reference kinds
    ANY = 4
    CODE = 5
    MACRO = 6
    IDENT = 7
    CSTRING = 8
    CANY = 9
    WORD = 10
    POP = 11
    COND = 12


STRING_TYPES: frozenset[ValueType] = frozenset(
    {ValueType.STRING, ValueType.MACRO, ValueType.CSTRING}
)

_WHITESPACE = " \t\n\v\f\r"
_FLOAT_PREFIX = re.compile(r"[ \t\n\v\f\r]*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# ── Numeric text conversions ─────────────────────────────────────


def to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _scan_int(text: str) -> tuple[int, int]:
    """strtoul(text, &end, 0) followed by a cast to int; returns (value, end)."""
    i = 0
    n = len(text)
    while i < n and text[i] in _WHITESPACE:
        i += 1
    negative = False
    if i < n and text[i] in "+-":
        negative = text[i] == "-"
        i += 1
    base = 10
    if i + 1 < n and text[i] == "0" and text[i + 1] in "xX" and (
        i + 2 < n and text[i + 2] in "0123456789abcdefABCDEF"
    ):
        base = 16
        i += 2
    elif i < n and text[i] == "0":
        base = 8
    digits = "0123456789abcdef"[:base]
    start = i
    value = 0
    while i < n and text[i].lower() in digits:
        value = value * base + int(text[i], base)
        i += 1
    if i == start:
        return 0, 0
    if value >= 2**64:
        value = 2**64 - 1
    if negative:
        value = -value
    return to_int32(value), i


def parse_int(text: str) -> int:
    return _scan_int(text)[0]


def _scan_float(text: str) -> tuple[float, int]:
    match = _FLOAT_PREFIX.match(text)
    if not match:
        return 0.0, 0
    return float(match.group(0)), match.end()


def parse_float(text: str) -> float:
    """strtod prefix parse, falling back to the integer parser for hex text."""
    value, end = _scan_float(text)
    if value or end == 0 or end >= len(text) or text[end] not in "xX":
        return value
    return float(parse_int(text))


parse_number = parse_float


def check_number(text: str) -> bool:
    if not text:
        return False
    first = text[0]
    if first.isdigit():
        return True
    if first in "+-":
        return (len(text) > 1 and text[1].isdigit()) or (
            len(text) > 2 and text[1] == "." and text[2].isdigit()
        )
    if first == ".":
        return len(text) > 1 and text[1].isdigit()
    return False


def string_bool(text: str) -> bool:
    if not text:
        return False
    first = text[0]
    if first in "+-":
        second = text[1] if len(text) > 1 else ""
        if second == ".":
            return not (len(text) > 2 and text[2].isdigit()) or parse_float(text) != 0
        if second != "0":
            return True
    elif first == ".":
        return not (len(text) > 1 and text[1].isdigit()) or parse_float(text) != 0
    elif first != "0":
        return True
    value, end = _scan_int(text)
    if value:
        return True
    if end < len(text) and text[end] in "e.":
        return parse_float(text) != 0
    return False


def format_int(value: int) -> str:
    return str(value)


def format_float(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return "%.1f" % value
    return "%.7g" % value


def float_to_int(value: float) -> int:
    if not math.isfinite(value):
        return 0
    return to_int32(int(value))


# ── Value ────────────────────────────────────────────────────────


@dataclass
class Value:
    type: ValueType = ValueType.NULL
    data: Any = None

    # Constructors

    @classmethod
    def null(cls) -> Value:
        return cls()

    @classmethod
    def of_int(cls, value: int) -> Value:
        return cls(ValueType.INTEGER, value)

    @classmethod
    def of_float(cls, value: float) -> Value:
        return cls(ValueType.FLOAT, float(value))

    @classmethod
    def of_str(cls, value: str) -> Value:
        return cls(ValueType.STRING, value)

    @classmethod
    def of_code(cls, program: Program) -> Value:
        return cls(ValueType.CODE, program)

    @classmethod
    def of_ident(cls, ident: Ident) -> Value:
        return cls(ValueType.IDENT, ident)

    @classmethod
    def of_number(cls, value: float) -> Value:
        v = cls()
        v.set_number(value)
        return v

    @classmethod
    def from_python(cls, value: Any) -> Value:
        """Wrap a native command's return value."""
        if value is None:
            return cls()
        if isinstance(value, Value):
            return value
        if isinstance(value, bool):
            return cls.of_int(1 if value else 0)
        if isinstance(value, int):
            return cls.of_int(to_int32(value))
        if isinstance(value, float):
            return cls.of_float(value)
        return cls.of_str(str(value))

    # Setters

    def set_int(self, value: int) -> None:
        self.type, self.data = ValueType.INTEGER, value

    def set_float(self, value: float) -> None:
        self.type, self.data = ValueType.FLOAT, float(value)

    def set_number(self, value: float) -> None:
        if math.isfinite(value) and value == int(value) and -(2**31) <= value < 2**31:
            self.set_int(int(value))
        else:
            self.set_float(value)

    def set_str(self, value: str) -> None:
        self.type, self.data = ValueType.STRING, value

    def set_cstr(self, value: str) -> None:
        self.type, self.data = ValueType.CSTRING, value

    def set_code(self, program: Program) -> None:
        self.type, self.data = ValueType.CODE, program

    def set_ident(self, ident: Ident) -> None:
        self.type, self.data = ValueType.IDENT, ident

    def set_null(self) -> None:
        self.type, self.data = ValueType.NULL, None

    def set(self, other: Value) -> None:
        self.type, self.data = other.type, other.data

    def release(self) -> None:
        self.set_null()

    cleanup = release

    # Getters

    def is_string(self) -> bool:
        return self.type in STRING_TYPES

    def get_str(self) -> str:
        if self.type in STRING_TYPES:
            return self.data
        if self.type == ValueType.INTEGER:
            return format_int(self.data)
        if self.type == ValueType.FLOAT:
            return format_float(self.data)
        return ""

    def get_int(self) -> int:
        if self.type == ValueType.INTEGER:
            return self.data
        if self.type == ValueType.FLOAT:
            return float_to_int(self.data)
        if self.type in STRING_TYPES:
            return parse_int(self.data)
        return 0

    def get_float(self) -> float:
        if self.type == ValueType.FLOAT:
            return self.data
        if self.type == ValueType.INTEGER:
            return float(self.data)
        if self.type in STRING_TYPES:
            return parse_float(self.data)
        return 0.0

    def get_number(self) -> float:
        if self.type in STRING_TYPES:
            return parse_number(self.data)
        return self.get_float()

    def get_bool(self) -> bool:
        if self.type in (ValueType.INTEGER, ValueType.FLOAT):
            return self.data != 0
        if self.type in STRING_TYPES:
            return string_bool(self.data)
        return False

    def get_val(self) -> Value:
        """Owned copy; borrowed strings become plain strings."""
        if self.type in (ValueType.MACRO, ValueType.CSTRING):
            return Value.of_str(self.data)
        return Value(self.type, self.data)

    to_owned_value = get_val

    # In-place coercions

    def force_int(self) -> None:
        if self.type != ValueType.INTEGER:
            self.set_int(self.get_int())

    def force_float(self) -> None:
        if self.type != ValueType.FLOAT:
            self.set_float(self.get_float())

    def force_str(self) -> None:
        if self.type != ValueType.STRING:
            self.set_str(self.get_str())

    def force(self, value_type: ValueType) -> None:
        """Coerce to a return type; NULL leaves the value alone."""
        if value_type == ValueType.STRING:
            self.force_str()
        elif value_type == ValueType.INTEGER:
            self.force_int()
        elif value_type == ValueType.FLOAT:
            self.force_float()

    def __str__(self) -> str:
        return self.get_str()
