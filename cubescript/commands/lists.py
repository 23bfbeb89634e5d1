"""List commands over whitespace-separated list text."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..idents import Ident, IdentType
from ..scope import LoopBinding
from ..signature import NativeCommand
from ..text import explode_list, list_elements, list_len
from ..values import Value

if TYPE_CHECKING:
    from ..vm import VirtualMachine


def _at(args: list[Value], vm: VirtualMachine) -> str:
    """`at list i j ...`: index into nested lists, one index per level."""
    if not args:
        return ""
    text = args[0].get_str()
    for index_arg in args[1:]:
        elements = list_elements(text)
        index = max(index_arg.get_int(), 0)
        if index >= len(elements):
            return ""
        text = elements[index].value(text)
    return text


def _sublist(args: list[Value], vm: VirtualMachine) -> str:
    text = args[0].get_str()
    offset = max(args[1].get_int(), 0)
    count = max(args[2].get_int(), 0) if args[3].get_int() >= 3 else -1
    elements = list_elements(text)
    if count < 0:
        if offset == 0:
            return text
        return text[elements[offset].quote_start :] if offset < len(elements) else ""
    if count == 0 or offset >= len(elements):
        return ""
    last = elements[min(offset + count, len(elements)) - 1]
    return text[elements[offset].quote_start : last.quote_end]


def _index_of(text: str, item: str) -> int:
    values = explode_list(text)
    return values.index(item) if item in values else -1


def _indexof(args: list[Value], vm: VirtualMachine) -> int:
    return _index_of(args[0].get_str(), args[1].get_str())


def _listdel(args: list[Value], vm: VirtualMachine) -> str:
    text, remove = args[0].get_str(), args[1].get_str()
    kept = [
        element.raw(text)
        for element in list_elements(text)
        if _index_of(remove, element.value(text)) < 0
    ]
    return " ".join(kept)


def _prettylist(args: list[Value], vm: VirtualMachine) -> str:
    """`prettylist "a b c" and` -> `a, b, and c`."""
    text, conj = args[0].get_str(), args[1].get_str()
    values = explode_list(text)
    out: list[str] = []
    for n, value in enumerate(values):
        out.append(value)
        if n + 1 < len(values):
            if len(values) > 2 or not conj:
                out.append(",")
            if n + 2 == len(values) and conj:
                out.append(" " + conj)
            out.append(" ")
    return "".join(out)


# ── Iteration ────────────────────────────────────────────────────


def _list_ident(args: list[Value]) -> Ident | None:
    ident: Ident = args[0].data
    return ident if ident.type == IdentType.ALIAS else None


def _listfind(args: list[Value], vm: VirtualMachine) -> int:
    ident = _list_ident(args)
    if ident is None:
        return -1
    text = args[1].get_str()
    with LoopBinding(ident) as binding:
        for n, element in enumerate(list_elements(text)):
            binding.set(Value.of_str(element.value(text)))
            if vm.execute_cond(args[2]):
                return n
    return -1


def _listcount(args: list[Value], vm: VirtualMachine) -> int:
    ident = _list_ident(args)
    if ident is None:
        return 0
    text = args[1].get_str()
    count = 0
    with LoopBinding(ident) as binding:
        for element in list_elements(text):
            binding.set(Value.of_str(element.value(text)))
            if vm.execute_cond(args[2]):
                count += 1
    return count


def _looplist(args: list[Value], vm: VirtualMachine) -> None:
    ident = _list_ident(args)
    if ident is None:
        return
    text = args[1].get_str()
    with LoopBinding(ident) as binding:
        for element in list_elements(text):
            binding.set(Value.of_str(element.value(text)))
            vm.execute_code(args[2])


TABLE: list[NativeCommand] = [
    NativeCommand("listlen", "s", lambda args, vm: list_len(args[0].get_str())),
    NativeCommand("at", "si1V", _at),
    NativeCommand("sublist", "siiN", _sublist),
    NativeCommand("listfind", "rse", _listfind),
    NativeCommand("listcount", "rse", _listcount),
    NativeCommand("looplist", "rse", _looplist),
    NativeCommand("indexof", "ss", _indexof),
    NativeCommand("listdel", "ss", _listdel),
    NativeCommand("prettylist", "ss", _prettylist),
]
