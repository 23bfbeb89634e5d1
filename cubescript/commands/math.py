"""Arithmetic, bitwise, comparison and numeric commands."""

from __future__ import annotations

import math
import operator
import random
from typing import TYPE_CHECKING, Callable

from ..signature import NativeCommand
from ..values import Value, to_int32

if TYPE_CHECKING:
    from ..vm import VirtualMachine

_RAD = math.pi / 180


def _int_div(a: int, b: int) -> int:
    if b == 0:
        return 0
    q = abs(a) // abs(b)
    return to_int32(q if (a < 0) == (b < 0) else -q)


def _int_mod(a: int, b: int) -> int:
    if b == 0:
        return 0
    return to_int32(a - b * _int_div(a, b))


def _float_div(a: float, b: float) -> float:
    return a / b if b else 0.0


def _float_mod(a: float, b: float) -> float:
    if not b:
        return 0.0
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _float_pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        negative = a < 0 and b == int(b) and int(b) % 2 == 1
        return -math.inf if negative else math.inf
    except ValueError:
        return math.nan


def _shl(a: int, b: int) -> int:
    return to_int32(a << max(b, 0)) if b < 32 else 0


def _shr(a: int, b: int) -> int:
    return a >> min(max(b, 0), 31)


# ── Variadic folds ───────────────────────────────────────────────


def _fold(
    get: Callable[[Value], float],
    op: Callable,
    initial,
    unary: Callable | None = None,
):
    """`(op a b c ...)`: left fold; one or zero args apply the unary form."""

    def fold(args: list[Value], vm: VirtualMachine):
        if len(args) >= 2:
            value = op(get(args[0]), get(args[1]))
            for arg in args[2:]:
                value = op(value, get(arg))
            return value
        value = get(args[0]) if args else initial
        return unary(value) if unary is not None else value

    return fold


def _int_fold(op: Callable[[int, int], int], initial: int = 0, unary=None):
    return _fold(Value.get_int, lambda a, b: to_int32(op(a, b)), initial, unary)


def _float_fold(op: Callable[[float, float], float], initial: float = 0.0, unary=None):
    return _fold(Value.get_float, op, initial, unary)


def _compare(get: Callable[[Value], object], op: Callable[[object, object], bool], zero):
    """Chained comparison: true when every adjacent pair satisfies `op`."""

    def compare(args: list[Value], vm: VirtualMachine) -> bool:
        if len(args) < 2:
            return op(get(args[0]) if args else zero, zero)
        return all(op(get(a), get(b)) for a, b in zip(args, args[1:]))

    return compare


def _extreme(get: Callable[[Value], float], pick: Callable, zero):
    def extreme(args: list[Value], vm: VirtualMachine):
        if not args:
            return zero
        return pick(get(a) for a in args)

    return extreme


def _unary_float(fn: Callable[[float], float]):
    def apply(args: list[Value], vm: VirtualMachine) -> float:
        try:
            return fn(args[0].get_float())
        except OverflowError:
            return math.inf
        except ValueError:
            return math.nan

    return apply


# ── Rounding, random, hex ────────────────────────────────────────


def _finite(fn: Callable[[float], float]):
    """Apply a rounding function; infinities and NaN pass through unchanged."""

    def apply(args: list[Value], vm: VirtualMachine) -> float:
        value = args[0].get_float()
        return float(fn(value)) if math.isfinite(value) else value

    return apply


def _round(args: list[Value], vm: VirtualMachine) -> float:
    value = args[0].get_float()
    step = args[1].get_float()
    if not math.isfinite(value):
        return value
    if step > 0:
        value += step * (-0.5 if value < 0 else 0.5)
        return value - _float_mod(value, step)
    return float(math.ceil(value - 0.5) if value < 0 else math.floor(value + 0.5))


def _rnd(args: list[Value], vm: VirtualMachine) -> int:
    high, low = args[0].get_int(), args[1].get_int()
    if high - low <= 0:
        return low
    return random.randrange(high - low) + low


def _tohex(args: list[Value], vm: VirtualMachine) -> str:
    digits = max(args[1].get_int(), 1)
    return "0x%.*X" % (digits, args[0].get_int() & 0xFFFFFFFF)


def _abs(args: list[Value], vm: VirtualMachine) -> int:
    return to_int32(abs(args[0].get_int()))


_INT_COMPARISONS = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


TABLE: list[NativeCommand] = [
    NativeCommand("+", "i1V", _int_fold(operator.add)),
    NativeCommand("*", "i1V", _int_fold(operator.mul, 1)),
    NativeCommand("-", "i1V", _int_fold(operator.sub, 0, lambda v: to_int32(-v))),
    NativeCommand("+f", "f1V", _float_fold(operator.add)),
    NativeCommand("*f", "f1V", _float_fold(operator.mul, 1.0)),
    NativeCommand("-f", "f1V", _float_fold(operator.sub, 0.0, operator.neg)),
    NativeCommand("div", "i1V", _int_fold(_int_div)),
    NativeCommand("mod", "i1V", _int_fold(_int_mod)),
    NativeCommand("divf", "f1V", _float_fold(_float_div)),
    NativeCommand("modf", "f1V", _float_fold(_float_mod)),
    NativeCommand("pow", "f1V", _float_fold(_float_pow)),
    NativeCommand("&", "i1V", _int_fold(operator.and_)),
    NativeCommand("|", "i1V", _int_fold(operator.or_)),
    NativeCommand("^", "i1V", _int_fold(operator.xor)),
    NativeCommand("~", "i1V", _int_fold(operator.xor, 0, lambda v: ~v)),
    NativeCommand("&~", "i1V", _int_fold(lambda a, b: a & ~b)),
    NativeCommand("|~", "i1V", _int_fold(lambda a, b: a | ~b)),
    NativeCommand("^~", "i1V", _int_fold(lambda a, b: a ^ ~b)),
    NativeCommand("<<", "i1V", _int_fold(_shl)),
    NativeCommand(">>", "i1V", _int_fold(_shr)),
    *(
        NativeCommand(name, "i1V", _compare(Value.get_int, op, 0))
        for name, op in _INT_COMPARISONS.items()
    ),
    *(
        NativeCommand(name + "f", "f1V", _compare(Value.get_float, op, 0.0))
        for name, op in _INT_COMPARISONS.items()
    ),
    NativeCommand("min", "i1V", _extreme(Value.get_int, min, 0)),
    NativeCommand("max", "i1V", _extreme(Value.get_int, max, 0)),
    NativeCommand("minf", "f1V", _extreme(Value.get_float, min, 0.0)),
    NativeCommand("maxf", "f1V", _extreme(Value.get_float, max, 0.0)),
    NativeCommand("abs", "i", _abs),
    NativeCommand("absf", "f", lambda args, vm: abs(args[0].get_float())),
    NativeCommand("floor", "f", _finite(math.floor)),
    NativeCommand("ceil", "f", _finite(math.ceil)),
    NativeCommand("round", "ff", _round),
    NativeCommand("sin", "f", _unary_float(lambda x: math.sin(x * _RAD))),
    NativeCommand("cos", "f", _unary_float(lambda x: math.cos(x * _RAD))),
    NativeCommand("tan", "f", _unary_float(lambda x: math.tan(x * _RAD))),
    NativeCommand("asin", "f", _unary_float(lambda x: math.asin(x) / _RAD)),
    NativeCommand("acos", "f", _unary_float(lambda x: math.acos(x) / _RAD)),
    NativeCommand("atan", "f", _unary_float(lambda x: math.atan(x) / _RAD)),
    NativeCommand(
        "atan2", "ff", lambda args, vm: math.atan2(args[0].get_float(), args[1].get_float()) / _RAD
    ),
    NativeCommand("sqrt", "f", _unary_float(math.sqrt)),
    NativeCommand("loge", "f", _unary_float(math.log)),
    NativeCommand("log2", "f", _unary_float(math.log2)),
    NativeCommand("log10", "f", _unary_float(math.log10)),
    NativeCommand("exp", "f", _unary_float(math.exp)),
    NativeCommand("rnd", "ii", _rnd),
    NativeCommand("tohex", "ii", _tohex),
]
