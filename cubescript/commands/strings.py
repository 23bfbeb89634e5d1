"""String commands."""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING

from ..signature import NativeCommand
from ..text import strip_colors
from ..values import Value

if TYPE_CHECKING:
    from ..vm import VirtualMachine


def _format(args: list[Value], vm: VirtualMachine) -> str:
    """`format "%1 and %2" a b`: %1..%9 substitute arguments, %% is a percent."""
    if not args:
        return ""
    template = args[0].get_str()
    out: list[str] = []
    i = 0
    while i < len(template):
        ch = template[i]
        i += 1
        if ch != "%":
            out.append(ch)
            continue
        if i >= len(template):
            break
        spec = template[i]
        i += 1
        if "1" <= spec <= "9":
            index = int(spec)
            out.append(args[index].get_str() if index < len(args) else "")
        else:
            out.append(spec)
    return "".join(out)


def _strstr(args: list[Value], vm: VirtualMachine) -> int:
    return args[0].get_str().find(args[1].get_str())


def _substr(args: list[Value], vm: VirtualMachine) -> str:
    text = args[0].get_str()
    offset = min(max(args[1].get_int(), 0), len(text))
    if args[3].get_int() >= 3:
        count = min(max(args[2].get_int(), 0), len(text) - offset)
    else:
        count = len(text) - offset
    return text[offset : offset + count]


def _strreplace(args: list[Value], vm: VirtualMachine) -> str:
    """Replace occurrences, alternating between two replacements when given."""
    text, old = args[0].get_str(), args[1].get_str()
    new = args[2].get_str()
    new2 = args[3].get_str() or new
    if not old:
        return text
    out: list[str] = []
    pos = 0
    n = 0
    while True:
        found = text.find(old, pos)
        if found < 0:
            out.append(text[pos:])
            return "".join(out)
        out.append(text[pos:found])
        out.append(new2 if n & 1 else new)
        pos = found + len(old)
        n += 1


def _strsplice(args: list[Value], vm: VirtualMachine) -> str:
    text, insert = args[0].get_str(), args[1].get_str()
    offset = min(max(args[2].get_int(), 0), len(text))
    count = min(max(args[3].get_int(), 0), len(text) - offset)
    return text[:offset] + insert + text[offset + count :]


def _compare(op):
    def compare(args: list[Value], vm: VirtualMachine) -> bool:
        if len(args) < 2:
            return op(args[0].get_str() if args else "", "")
        return all(op(a.get_str(), b.get_str()) for a, b in zip(args, args[1:]))

    return compare


_STRING_COMPARISONS = {
    "=s": operator.eq,
    "!=s": operator.ne,
    "<s": operator.lt,
    ">s": operator.gt,
    "<=s": operator.le,
    ">=s": operator.ge,
}


TABLE: list[NativeCommand] = [
    NativeCommand("concat", "V", lambda args, vm: " ".join(a.get_str() for a in args)),
    NativeCommand("concatword", "V", lambda args, vm: "".join(a.get_str() for a in args)),
    NativeCommand("format", "V", _format),
    NativeCommand("strlen", "s", lambda args, vm: len(args[0].get_str())),
    NativeCommand("strstr", "ss", _strstr),
    NativeCommand("substr", "siiN", _substr),
    NativeCommand("strcmp", "s1V", _compare(operator.eq)),
    *(NativeCommand(name, "s1V", _compare(op)) for name, op in _STRING_COMPARISONS.items()),
    NativeCommand("strlower", "s", lambda args, vm: args[0].get_str().lower()),
    NativeCommand("strupper", "s", lambda args, vm: args[0].get_str().upper()),
    NativeCommand("strreplace", "ssss", _strreplace),
    NativeCommand("strsplice", "ssii", _strsplice),
    NativeCommand("stripcolors", "s", lambda args, vm: strip_colors(args[0].get_str())),
]
