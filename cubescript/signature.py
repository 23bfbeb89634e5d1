"""Native command signatures, parsed once at registration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from .constants import MAX_ARGS, MAX_COMMAND_ARGS, SIGNATURE_CHARS
from .idents import IdentType
from .values import ValueType

REPEAT_CHARS = "1234"


class ParamKind(str, Enum):
    VALUE = "value"
    SELF = "self"
    COUNT = "count"
    BIND = "bind"
    REST = "rest"
    REPEAT = "repeat"


class ParamDefault(str, Enum):
    """What a missing script argument becomes."""

    NONE = "none"
    ZERO_INT = "zero_int"
    INT_MIN = "int_min"
    ZERO_FLOAT = "zero_float"
    PREVIOUS_FLOAT = "previous_float"
    EMPTY_STR = "empty_str"
    PREVIOUS_STR = "previous_str"
    NULL = "null"
    EMPTY_CODE = "empty_code"
    DUMMY_IDENT = "dummy_ident"


# signature char -> (word type compiled for it, default when missing)
_VALUE_PARAMS: dict[str, tuple[ValueType, ParamDefault]] = {
    "i": (ValueType.INTEGER, ParamDefault.ZERO_INT),
    "b": (ValueType.INTEGER, ParamDefault.INT_MIN),
    "f": (ValueType.FLOAT, ParamDefault.ZERO_FLOAT),
    "F": (ValueType.FLOAT, ParamDefault.PREVIOUS_FLOAT),
    "s": (ValueType.CSTRING, ParamDefault.EMPTY_STR),
    "S": (ValueType.STRING, ParamDefault.PREVIOUS_STR),
    "t": (ValueType.CANY, ParamDefault.NULL),
    "T": (ValueType.ANY, ParamDefault.NULL),
    "E": (ValueType.COND, ParamDefault.NULL),
    "e": (ValueType.CODE, ParamDefault.EMPTY_CODE),
    "r": (ValueType.IDENT, ParamDefault.DUMMY_IDENT),
}


class Param(BaseModel):
    """One parameter slot of a command signature.

    VALUE slots carry the word type the compiler emits (and the VM coerces
    to) plus the default for a missing argument. REPEAT slots jump `back`
    slots to re-read the preceding parameters. A trailing string VALUE has
    `collects_rest` set: every remaining argument is joined into it. REST
    slots take the remaining arguments untyped, joined when `concat` is set.
    """

    model_config = ConfigDict(frozen=True)

    kind: ParamKind
    char: str
    wordtype: ValueType = ValueType.NULL
    default: ParamDefault = ParamDefault.NONE
    back: int = 0
    collects_rest: bool = False
    concat: bool = False


class CommandSignature(BaseModel):
    """Parameter layout of a native command."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    params: tuple[Param, ...] = ()

    def __str__(self) -> str:
        return self.text


def _param(ch: str, last: bool) -> Param:
    if ch in REPEAT_CHARS:
        return Param(kind=ParamKind.REPEAT, char=ch, back=int(ch))
    if ch == "$":
        return Param(kind=ParamKind.SELF, char=ch)
    if ch == "N":
        return Param(kind=ParamKind.COUNT, char=ch)
    if ch == "D":
        return Param(kind=ParamKind.BIND, char=ch)
    if ch in "CV":
        return Param(kind=ParamKind.REST, char=ch, wordtype=ValueType.CANY, concat=ch == "C")
    wordtype, default = _VALUE_PARAMS[ch]
    return Param(
        kind=ParamKind.VALUE,
        char=ch,
        wordtype=wordtype,
        default=default,
        collects_rest=last and ch in "sS",
    )


def parse_signature(text: str, name: str = "") -> CommandSignature:
    """Validate a signature string and turn it into parameter slots.

    Raises:
        ValueError: on an unknown parameter character, a repeat reaching
            before the start, `D` anywhere but last, or when a non-variadic
            command declares more than the fixed-arity limit.
    """
    for ch in text:
        if ch not in SIGNATURE_CHARS:
            raise ValueError(f"builtin {name} declared with illegal type: {text}")
    params = tuple(_param(ch, pos == len(text) - 1) for pos, ch in enumerate(text))

    numargs = 0
    variadic = False
    pos = 0
    while pos < len(params):
        param = params[pos]
        if param.kind == ParamKind.REPEAT:
            if pos < param.back:
                raise ValueError(f"builtin {name} repeats past its start: {text}")
            if numargs < MAX_ARGS:
                pos -= param.back + 1
        elif param.kind == ParamKind.REST:
            variadic = True
        elif param.kind == ParamKind.BIND:
            if pos != len(params) - 1:
                raise ValueError(f"builtin {name} must declare D last: {text}")
        elif numargs < MAX_ARGS:
            numargs += 1
        pos += 1
    if not variadic and numargs > MAX_COMMAND_ARGS:
        raise ValueError(f"builtin {name} declared with too many args: {numargs}")
    return CommandSignature(text=text, params=params)


@dataclass(frozen=True)
class NativeCommand:
    """One row of a builtin command table handed to the registry."""

    name: str
    signature: str
    fn: Callable[..., Any] | None
    kind: IdentType = IdentType.COMMAND
