"""Ident management commands: aliases, script-declared vars, debugging."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import constants
from ..idents import Ident, IdentFlag, IdentType
from ..scope import ScopeStack
from ..signature import NativeCommand
from ..values import Value

if TYPE_CHECKING:
    from ..vm import VirtualMachine


def _alias(args: list[Value], vm: VirtualMachine) -> None:
    vm.set_alias(args[0].get_str(), args[1])


def _push(args: list[Value], vm: VirtualMachine) -> Value | None:
    ident: Ident = args[0].data
    if ident.type != IdentType.ALIAS or ident.index < constants.MAX_ARGS:
        return None
    ScopeStack.push_arg(ident, args[1].get_val())
    ident.flags &= ~IdentFlag.UNKNOWN
    try:
        return vm.execute_code(args[2])
    finally:
        ScopeStack.pop_arg(ident)


def _getalias(args: list[Value], vm: VirtualMachine) -> str:
    ident = vm.registry.lookup(args[0].get_str())
    if ident is None or ident.type != IdentType.ALIAS:
        return ""
    if ident.index < constants.MAX_ARGS and not vm.scope.is_bound(ident):
        return ""
    return ident.get_str()


def _identexists(args: list[Value], vm: VirtualMachine) -> bool:
    return args[0].get_str() in vm.registry


def _resetvar(args: list[Value], vm: VirtualMachine) -> None:
    vm.registry.reset_var(args[0].get_str())


def _clearoverrides(args: list[Value], vm: VirtualMachine) -> None:
    vm.registry.clear_overrides()
    vm.sleeps.clear(clear_overrides=True)


def _nodebug(args: list[Value], vm: VirtualMachine) -> Value:
    vm.registry.nodebug += 1
    try:
        return vm.execute_code(args[0])
    finally:
        vm.registry.nodebug -= 1


# ── Script-declared variables ────────────────────────────────────


def _can_define(name: str, vm: VirtualMachine) -> bool:
    ident = vm.registry.lookup(name)
    if ident is None or (ident.type == IdentType.ALIAS and ident.flags & IdentFlag.UNKNOWN):
        return True
    vm.debug_code(constants.MSG_CANNOT_REDEFINE_VAR % name)
    return False


def _on_change(source: str, vm: VirtualMachine):
    if not source:
        return None

    def run(ident: Ident) -> None:
        vm.execute(source, ident.name)

    return run


def _make_defvar(flags: IdentFlag):
    def defvar(args: list[Value], vm: VirtualMachine) -> None:
        name = args[0].get_str()
        if not _can_define(name, vm):
            return
        vm.registry.declare_var(
            name,
            args[1].get_int(),
            args[2].get_int(),
            args[3].get_int(),
            on_change=_on_change(args[4].get_str(), vm),
            flags=flags,
        )

    return defvar


def _make_deffvar(flags: IdentFlag):
    def deffvar(args: list[Value], vm: VirtualMachine) -> None:
        name = args[0].get_str()
        if not _can_define(name, vm):
            return
        vm.registry.declare_float_var(
            name,
            args[1].get_float(),
            args[2].get_float(),
            args[3].get_float(),
            on_change=_on_change(args[4].get_str(), vm),
            flags=flags,
        )

    return deffvar


def _make_defsvar(flags: IdentFlag):
    def defsvar(args: list[Value], vm: VirtualMachine) -> None:
        name = args[0].get_str()
        if not _can_define(name, vm):
            return
        vm.registry.declare_string_var(
            name,
            args[1].get_str(),
            on_change=_on_change(args[2].get_str(), vm),
            flags=flags,
        )

    return defsvar


def _var_bound(kind: IdentType, attr: str):
    def bound(args: list[Value], vm: VirtualMachine) -> Any:
        ident = vm.registry.lookup(args[0].get_str())
        if ident is None or ident.type != kind:
            return 0.0 if kind == IdentType.FLOAT_VAR else 0
        return getattr(ident, attr)

    return bound


TABLE: list[NativeCommand] = [
    NativeCommand("alias", "sT", _alias),
    NativeCommand("push", "rTe", _push),
    NativeCommand("getalias", "s", _getalias),
    NativeCommand("identexists", "s", _identexists),
    NativeCommand("resetvar", "s", _resetvar),
    NativeCommand("clearoverrides", "", _clearoverrides),
    NativeCommand("nodebug", "e", _nodebug),
    NativeCommand("defvar", "siiis", _make_defvar(IdentFlag.NONE)),
    NativeCommand("defvarp", "siiis", _make_defvar(IdentFlag.PERSIST)),
    NativeCommand("deffvar", "sfffs", _make_deffvar(IdentFlag.NONE)),
    NativeCommand("deffvarp", "sfffs", _make_deffvar(IdentFlag.PERSIST)),
    NativeCommand("defsvar", "sss", _make_defsvar(IdentFlag.NONE)),
    NativeCommand("defsvarp", "sss", _make_defsvar(IdentFlag.PERSIST)),
    NativeCommand("getvarmin", "s", _var_bound(IdentType.VAR, "min_value")),
    NativeCommand("getvarmax", "s", _var_bound(IdentType.VAR, "max_value")),
    NativeCommand("getfvarmin", "s", _var_bound(IdentType.FLOAT_VAR, "min_value")),
    NativeCommand("getfvarmax", "s", _var_bound(IdentType.FLOAT_VAR, "max_value")),
]
