"""Ident records: one discriminated record per named entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import TYPE_CHECKING, Any, Callable

from .values import Value, format_float, format_int, parse_float, parse_int

if TYPE_CHECKING:
    from .bytecode import Program
    from .signature import CommandSignature


class IdentType(IntEnum):
    VAR = 0
    FLOAT_VAR = 1
    STRING_VAR = 2
    COMMAND = 3
    ALIAS = 4
    LOCAL = 5
    DO = 6
    DOARGS = 7
    IF = 8
    RESULT = 9
    NOT = 10
    AND = 11
    OR = 12


class IdentFlag(IntFlag):
    NONE = 0
    PERSIST = 1 << 0
    OVERRIDE = 1 << 1
    HEX = 1 << 2
    READONLY = 1 << 3
    OVERRIDDEN = 1 << 4
    UNKNOWN = 1 << 5
    ARG = 1 << 6


VAR_TYPES: frozenset[IdentType] = frozenset(
    {IdentType.VAR, IdentType.FLOAT_VAR, IdentType.STRING_VAR}
)


@dataclass
class VarStorage:
    """Backing cell for a variable; hosts may keep a reference and read it."""

    value: Any = 0


@dataclass(eq=False)
class Ident:
    name: str
    type: IdentType
    flags: IdentFlag = IdentFlag.NONE
    index: int = -1
    # Variables
    min_value: Any = None
    max_value: Any = None
    storage: VarStorage | None = None
    override_value: Any = None
    on_change: Callable[[Ident], None] | None = None
    # Aliases
    value: Value = field(default_factory=Value)
    code: Program | None = None
    stack: list[Value] = field(default_factory=list)
    # Commands
    signature: CommandSignature | None = None
    fun: Callable[..., Any] | None = None

    def __repr__(self) -> str:
        return f"Ident({self.name!r}, {self.type.name}, index={self.index})"

    def is_var(self) -> bool:
        return self.type in VAR_TYPES

    def changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def set_alias_value(self, value: Value) -> None:
        self.value = value
        self.code = None

    def get_value(self) -> Value:
        """Current value of a variable or alias as a fresh Value."""
        if self.type == IdentType.VAR:
            return Value.of_int(self.storage.value)
        if self.type == IdentType.FLOAT_VAR:
            return Value.of_float(self.storage.value)
        if self.type == IdentType.STRING_VAR:
            return Value.of_str(self.storage.value)
        if self.type == IdentType.ALIAS:
            return self.value.get_val()
        return Value()

    def get_str(self) -> str:
        if self.type == IdentType.VAR:
            return format_int(self.storage.value)
        if self.type == IdentType.FLOAT_VAR:
            return format_float(self.storage.value)
        if self.type == IdentType.STRING_VAR:
            return self.storage.value
        return self.value.get_str()

    def get_int(self) -> int:
        if self.type == IdentType.STRING_VAR:
            return parse_int(self.storage.value)
        if self.is_var():
            return int(self.storage.value)
        return self.value.get_int()

    def get_float(self) -> float:
        if self.type == IdentType.STRING_VAR:
            return parse_float(self.storage.value)
        if self.is_var():
            return float(self.storage.value)
        return self.value.get_float()

    get_number = get_float
