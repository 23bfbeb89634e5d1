"""Control flow commands: keywords, conditionals, loops, files and output."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .. import constants
from ..config import write_config
from ..idents import Ident, IdentType
from ..scope import LoopBinding
from ..signature import NativeCommand
from ..text import escape_string, unescape_string
from ..values import Value, ValueType

if TYPE_CHECKING:
    from ..vm import VirtualMachine

logger = logging.getLogger(__name__)


# ── Keywords ─────────────────────────────────────────────────────


def _do(args: list[Value], vm: VirtualMachine) -> Value:
    return vm.execute_code(args[0])


def _doargs(args: list[Value], vm: VirtualMachine) -> Value:
    return vm.execute_doargs(args[0])


def _if(args: list[Value], vm: VirtualMachine) -> Value:
    return vm.execute_code(args[1] if args[0].get_bool() else args[2])


def _result(args: list[Value], vm: VirtualMachine) -> Value:
    return args[0].get_val()


def _not(args: list[Value], vm: VirtualMachine) -> bool:
    return not args[0].get_bool()


def _short_circuit(stop_on: bool):
    """`&&` stops at the first false value, `||` at the first true one."""

    def run(args: list[Value], vm: VirtualMachine) -> Value:
        result = Value.of_int(0 if stop_on else 1)
        for arg in args:
            result = vm.execute_code(arg) if arg.type == ValueType.CODE else arg.get_val()
            if result.get_bool() == stop_on:
                break
        return result

    return run


def _choose(args: list[Value], vm: VirtualMachine) -> Value:
    return (args[1] if args[0].get_bool() else args[2]).get_val()


# ── Conditionals ─────────────────────────────────────────────────


def _cond(args: list[Value], vm: VirtualMachine) -> Value | None:
    i = 0
    while i < len(args):
        if i + 1 < len(args):
            if vm.execute_code(args[i]).get_bool():
                return vm.execute_code(args[i + 1])
            i += 2
        else:
            return vm.execute_code(args[i])
    return None


def _make_case(matches):
    def case(args: list[Value], vm: VirtualMachine) -> Value | None:
        subject = args[0]
        for i in range(1, len(args) - 1, 2):
            if args[i].type == ValueType.NULL or matches(args[i], subject):
                return vm.execute_code(args[i + 1])
        return None

    return case


# ── Loops ────────────────────────────────────────────────────────


def _loop_ident(args: list[Value]) -> Ident | None:
    ident: Ident = args[0].data
    return ident if ident.type == IdentType.ALIAS else None


def _count_loop(offset_arg: int | None, step_arg: int | None, count_arg: int):
    """loop, loop+, loop*, loop+*: iterate an alias over an arithmetic range."""

    def loop(args: list[Value], vm: VirtualMachine) -> None:
        ident = _loop_ident(args)
        count = args[count_arg].get_int()
        if ident is None or count <= 0:
            return
        offset = args[offset_arg].get_int() if offset_arg is not None else 0
        step = args[step_arg].get_int() if step_arg is not None else 1
        body = args[-1]
        with LoopBinding(ident) as binding:
            for i in range(count):
                binding.set(Value.of_int(offset + i * step))
                vm.execute_code(body)

    return loop


def _loopwhile(args: list[Value], vm: VirtualMachine) -> None:
    ident = _loop_ident(args)
    count = args[1].get_int()
    if ident is None or count <= 0:
        return
    with LoopBinding(ident) as binding:
        for i in range(count):
            binding.set(Value.of_int(i))
            if not vm.execute_cond(args[2]):
                break
            vm.execute_code(args[3])


def _loopconcat(separator: str):
    def loopconcat(args: list[Value], vm: VirtualMachine) -> str:
        ident = _loop_ident(args)
        count = args[1].get_int()
        if ident is None or count <= 0:
            return ""
        parts: list[str] = []
        with LoopBinding(ident) as binding:
            for i in range(count):
                binding.set(Value.of_int(i))
                parts.append(vm.execute_code(args[2]).get_str())
        return separator.join(parts)

    return loopconcat


def _while(args: list[Value], vm: VirtualMachine) -> None:
    while vm.execute_cond(args[0]):
        vm.execute_code(args[1])


# ── Files, timers and output ─────────────────────────────────────


def _exec(args: list[Value], vm: VirtualMachine) -> bool:
    return vm.exec_file(args[0].get_str(), args[1].get_int() != 0)


def _writecfg(args: list[Value], vm: VirtualMachine) -> None:
    path = args[0].get_str() or vm.config.saved_config
    try:
        write_config(vm.registry, path, vm.config.autoexec, vm.config.default_config)
    except OSError as exc:
        logger.warning("Failed to write %s: %s", path, exc)
        vm.console.error(constants.MSG_COULD_NOT_WRITE % path)


def _sleep(args: list[Value], vm: VirtualMachine) -> None:
    vm.sleeps.add(args[0].get_int(), args[1].get_str(), vm.millis, vm.registry.ident_flags)


def _clearsleep(args: list[Value], vm: VirtualMachine) -> None:
    vm.sleeps.clear(clear_overrides=args[0].get_int() != 0)


def _onrelease(args: list[Value], vm: VirtualMachine) -> None:
    vm.add_release_action(source=args[0].get_str())


def _echo(args: list[Value], vm: VirtualMachine) -> None:
    vm.console.info(args[0].get_str())


def _error(args: list[Value], vm: VirtualMachine) -> None:
    vm.console.error(args[0].get_str())


TABLE: list[NativeCommand] = [
    NativeCommand("do", "e", _do, IdentType.DO),
    NativeCommand("doargs", "e", _doargs, IdentType.DOARGS),
    NativeCommand("if", "tee", _if, IdentType.IF),
    NativeCommand("result", "T", _result, IdentType.RESULT),
    NativeCommand("!", "t", _not, IdentType.NOT),
    NativeCommand("&&", "E1V", _short_circuit(False), IdentType.AND),
    NativeCommand("||", "E1V", _short_circuit(True), IdentType.OR),
    NativeCommand("?", "tTT", _choose),
    NativeCommand("cond", "ee2V", _cond),
    NativeCommand("case", "ite2V", _make_case(lambda a, v: a.get_int() == v.get_int())),
    NativeCommand("casef", "fte2V", _make_case(lambda a, v: a.get_float() == v.get_float())),
    NativeCommand("cases", "ste2V", _make_case(lambda a, v: a.get_str() == v.get_str())),
    NativeCommand("while", "ee", _while),
    NativeCommand("loop", "rie", _count_loop(None, None, 1)),
    NativeCommand("loop+", "riie", _count_loop(1, None, 2)),
    NativeCommand("loop*", "riie", _count_loop(None, 1, 2)),
    NativeCommand("loop+*", "riiie", _count_loop(1, 2, 3)),
    NativeCommand("loopwhile", "riee", _loopwhile),
    NativeCommand("loopconcat", "rie", _loopconcat(" ")),
    NativeCommand("loopconcatword", "rie", _loopconcat("")),
    NativeCommand("exec", "sb", _exec),
    NativeCommand("escape", "s", lambda args, vm: escape_string(args[0].get_str())),
    NativeCommand("unescape", "s", lambda args, vm: unescape_string(args[0].get_str())),
    NativeCommand("writecfg", "s", _writecfg),
    NativeCommand("sleep", "is", _sleep),
    NativeCommand("clearsleep", "i", _clearsleep),
    NativeCommand("onrelease", "s", _onrelease),
    NativeCommand("echo", "C", _echo),
    NativeCommand("error", "C", _error),
]
