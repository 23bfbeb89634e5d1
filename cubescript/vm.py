"""Stack VM: runs compiled programs against the ident registry."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Callable

from . import constants
from .bytecode import (
    ARGC_MASK,
    INDEX_SHIFT,
    OP_MASK,
    OPERAND_SHIFT,
    Opcode,
    Program,
    encode,
    ret_of,
)
from .compiler import Compiler
from .console import Console
from .constants import MAX_ARGS
from .errors import CompileError
from .idents import Ident, IdentFlag, IdentType
from .registry import IdentRegistry
from .run_types import ExecutionStats, VMConfig
from .queues import SleepQueue, TriggerQueue
from .scope import ScopeStack
from .signature import ParamDefault, ParamKind
from .values import Value, ValueType, check_number

logger = logging.getLogger(__name__)

EMPTY_PROGRAM = Program(code=(encode(Opcode.EXIT),))


@dataclass(frozen=True)
class RunOutcome:
    """Result of running a snippet; `ok` is False when it failed to compile."""

    ok: bool
    value: Value = field(default_factory=Value)


@dataclass
class ReleaseAction:
    """Work to do when the key that triggered a bind is released."""

    key: str
    ident: Ident | None = None
    args: list[Value] = field(default_factory=list)
    source: str = ""


@dataclass
class _Frame:
    program: Program
    result: Value
    ip: int = 0
    stack: list[Value] = field(default_factory=list)

    def pop_args(self, count: int) -> list[Value]:
        if count <= 0:
            return []
        args = self.stack[-count:]
        del self.stack[-count:]
        return args


def _argc(word: int) -> int:
    return (word >> OPERAND_SHIFT) & ARGC_MASK


def _index(word: int) -> int:
    return word >> INDEX_SHIFT


def _operand(word: int) -> int:
    return word >> OPERAND_SHIFT


class VirtualMachine:
    """Executes bytecode; owns the scope stack, queues and key-bind state."""

    def __init__(
        self,
        registry: IdentRegistry,
        config: VMConfig = VMConfig(),
        console: Console | None = None,
    ):
        self.registry = registry
        self.config = config
        if console is not None:
            registry.console = console
        self.compiler = Compiler(registry)
        self.scope = ScopeStack([registry.arg(i) for i in range(MAX_ARGS)])
        self.depth = 0
        self.millis = 0
        self.stats = ExecutionStats()
        self.sleeps = SleepQueue()
        self.triggers = TriggerQueue()
        self.current_key: str | None = None
        self.release_actions: list[ReleaseAction] = []
        registry.trace = self._trace_aliases
        if sys.getrecursionlimit() < config.python_recursion_limit:
            sys.setrecursionlimit(config.python_recursion_limit)
        self._ops: list[Callable[[_Frame, int], bool | None]] = [
            getattr(self, f"_op_{op.name.lower()}") for op in Opcode
        ]

    @property
    def console(self) -> Console:
        return self.registry.console

    # ── Diagnostics ──────────────────────────────────────────────

    def debug_code(self, message: str) -> None:
        """Report a script problem, followed by the alias call trace."""
        self.registry.debug(message)

    def _trace_aliases(self) -> None:
        limit = self.registry.dbgalias.storage.value
        if not limit:
            return
        frames = list(self.scope.frames())
        total = len(frames)
        for depth, frame in enumerate(frames):
            name = frame.owner.name if frame.owner is not None else "?"
            if depth < limit:
                self.console.error("  %d) %s" % (total - depth, name))
            elif depth == total - 1:
                template = "  %d) %s" if depth == limit else "  ..%d) %s"
                self.console.error(template % (total - depth, name))

    # ── Entry points ─────────────────────────────────────────────

    def compile(self, source: str, name: str = "") -> Program | None:
        """Compile `source`, reporting a compile error instead of raising it."""
        try:
            return self.compiler.compile(source, name)
        except CompileError as exc:
            self.console.error(str(exc))
            logger.debug("Compile failed: %s", exc)
            return None

    def run_program(self, program: Program) -> Value:
        result = Value()
        self._run(program, result)
        return result

    def run_source(self, source: str, name: str = "") -> RunOutcome:
        program = self.compile(source, name)
        if program is None:
            return RunOutcome(ok=False)
        return RunOutcome(ok=True, value=self.run_program(program))

    def execute(self, source: str, name: str = "") -> Value:
        return self.run_source(source, name).value

    def execute_int(self, source: str) -> int:
        return self.execute(source).get_int()

    def execute_float(self, source: str) -> float:
        return self.execute(source).get_float()

    def execute_str(self, source: str) -> str:
        return self.execute(source).get_str()

    def execute_bool(self, source: str) -> bool:
        return self.execute(source).get_bool()

    def execute_code(self, value: Value) -> Value:
        """Run a code argument; strings and numbers are compiled on the fly."""
        result = Value()
        if value.type == ValueType.CODE:
            self._run(value.data, result)
        elif value.is_string() or value.type in (ValueType.INTEGER, ValueType.FLOAT):
            program = self.compile(value.get_str())
            if program is not None:
                self._run(program, result)
        return result

    def execute_doargs(self, value: Value) -> Value:
        """Run code with the calling alias's arguments visible."""
        if self.scope.top is self.scope.root:
            return self.execute_code(value)
        link = self.scope.undo_args()
        try:
            return self.execute_code(value)
        finally:
            self.scope.redo_args(link)

    def execute_cond(self, value: Value) -> bool:
        """Truth of a condition argument: code runs, anything else is tested."""
        if value.type == ValueType.CODE:
            return self.execute_code(value).get_bool()
        return value.get_bool()

    def execute_ident(self, name: str, noid: int = 0) -> Value:
        """Call the ident `name` with no arguments; `noid` when it is missing."""
        ident = self.registry.lookup(name)
        if ident is None:
            return Value.of_int(noid)
        result = Value()
        self._call_ident(ident, [], result, ValueType.NULL)
        return result

    def exec_file(self, path: str, msg: bool = True) -> bool:
        """Run a script file, trying `path` then each configured search path."""
        candidates = [path] + [os.path.join(base, path) for base in self.config.search_paths]
        for candidate in candidates:
            if os.path.isfile(candidate):
                break
        else:
            if msg:
                self.console.error(constants.MSG_COULD_NOT_READ % path)
            return False
        try:
            with open(candidate, encoding="utf-8") as f:
                source = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", candidate, exc)
            if msg:
                self.console.error(constants.MSG_COULD_NOT_READ % path)
            return False
        logger.info("Executing %s", candidate)
        return self.run_source(source, path).ok

    def tick(self, now_ms: int) -> int:
        """Advance the clock and run the earliest sleep command that fell due."""
        self.millis = now_ms
        return self.sleeps.check(now_ms, self)

    # ── Key binds ────────────────────────────────────────────────

    def execute_bind(self, key: str, source: str, is_down: bool) -> None:
        """Run a key bind on press; on release, fire the actions it registered."""
        if not is_down:
            self.release_key(key)
            return
        saved = self.current_key
        self.current_key = key
        try:
            self.execute(source, f"bind {key}")
        finally:
            self.current_key = saved

    def release_key(self, key: str) -> None:
        pending = [a for a in self.release_actions if a.key == key]
        self.release_actions = [a for a in self.release_actions if a.key != key]
        for action in pending:
            if action.ident is not None:
                self._call_native(action.ident, action.args + [Value.of_int(0)], Value(), 0)
            else:
                self.execute(action.source)

    def add_release_action(
        self, ident: Ident | None = None, args: list[Value] | None = None, source: str = ""
    ) -> bool:
        if self.current_key is None:
            return False
        self.release_actions.append(
            ReleaseAction(
                key=self.current_key,
                ident=ident,
                args=[a.get_val() for a in args or []],
                source=source,
            )
        )
        return True

    # ── Assignment ───────────────────────────────────────────────

    def set_alias(self, name: str, value: Value) -> None:
        """Script-side `name = value` for a name known only at runtime."""
        ident = self.registry.lookup(name)
        if ident is not None:
            self.assign(ident, value)
        elif check_number(name):
            self.debug_code(constants.MSG_CANNOT_ALIAS_NUMBER % name)
        else:
            self.registry.create_alias(name, value.get_val())

    def assign(self, ident: Ident, value: Value) -> None:
        registry = self.registry
        if ident.type == IdentType.ALIAS:
            if ident.index < MAX_ARGS:
                self.scope.set_arg(ident, value.get_val())
            else:
                registry.assign_alias(ident, value.get_val())
        elif ident.type == IdentType.VAR:
            registry.set_var_checked(ident, value.get_int())
        elif ident.type == IdentType.FLOAT_VAR:
            registry.set_float_var_checked(ident, value.get_float())
        elif ident.type == IdentType.STRING_VAR:
            registry.set_string_var_checked(ident, value.get_str())
        else:
            self.debug_code(constants.MSG_CANNOT_REDEFINE % ident.name)

    # ── Calls ────────────────────────────────────────────────────

    def call_alias(self, ident: Ident, args: list[Value], result: Value | None = None) -> Value:
        """Bind arg1..argN, run the alias body, then restore the caller's args."""
        if result is None:
            result = Value()
        registry = self.registry
        numargs = registry.numargs.storage
        saved_numargs = numargs.value
        saved_flags = registry.ident_flags
        frame = self.scope.enter(ident, args)
        numargs.value = len(args)
        registry.ident_flags |= ident.flags & IdentFlag.OVERRIDDEN
        self.stats.alias_calls += 1
        try:
            if ident.code is None:
                ident.code = self._alias_program(ident)
            self._run(ident.code, result)
        finally:
            registry.ident_flags = saved_flags
            self.scope.leave(frame)
            numargs.value = saved_numargs
        return result

    def _alias_program(self, ident: Ident) -> Program:
        if ident.value.type == ValueType.CODE:
            return ident.value.data
        program = self.compile(ident.value.get_str(), ident.name)
        return program if program is not None else EMPTY_PROGRAM

    def _call_native(self, ident: Ident, args: list[Value], result: Value, ret: int) -> None:
        self.stats.command_calls += 1
        result.set_null()
        value = ident.fun(args, self)
        result.set(Value.from_python(value))
        result.force(ret)

    def marshal_args(self, ident: Ident, args: list[Value], lookup: bool = False) -> list[Value]:
        """Coerce runtime arguments to a command's signature, filling defaults."""
        params = ident.signature.params
        out: list[Value] = []
        pos = 0
        fakeargs = 0
        rep = False
        i = 0
        while i < len(params):
            param = params[i]
            i += 1
            kind = param.kind
            if kind == ParamKind.REST:
                rest = [a.get_val() for a in args[pos:]]
                if param.concat:
                    joined = " ".join(a.get_str() for a in out + rest)
                    return [Value.of_str(joined)]
                return out + rest
            if kind == ParamKind.SELF:
                out.append(Value.of_ident(ident))
                continue
            if kind == ParamKind.COUNT:
                out.append(Value.of_int(-1 if lookup else len(out) - fakeargs))
                continue
            if kind == ParamKind.BIND:
                out.append(Value.of_int(1 if self.add_release_action(ident, out) else 0))
                continue
            if kind == ParamKind.REPEAT:
                if pos < len(args):
                    i -= param.back + 1
                    rep = True
                continue
            if pos >= len(args):
                if rep:
                    continue
                out.append(self._default_arg(param.default, out))
                fakeargs += 1
                continue
            arg = args[pos].get_val()
            pos += 1
            out.append(self._coerce_arg(param.wordtype, arg))
        return out

    def _default_arg(self, default: ParamDefault, previous: list[Value]) -> Value:
        if default == ParamDefault.ZERO_INT:
            return Value.of_int(0)
        if default == ParamDefault.INT_MIN:
            return Value.of_int(constants.INT_MIN)
        if default == ParamDefault.ZERO_FLOAT:
            return Value.of_float(0.0)
        if default == ParamDefault.PREVIOUS_FLOAT:
            return Value.of_float(previous[-1].get_float() if previous else 0.0)
        if default == ParamDefault.EMPTY_STR:
            return Value.of_str("")
        if default == ParamDefault.PREVIOUS_STR:
            return Value.of_str(previous[-1].get_str() if previous else "")
        if default == ParamDefault.EMPTY_CODE:
            return Value.of_code(EMPTY_PROGRAM)
        if default == ParamDefault.DUMMY_IDENT:
            return Value.of_ident(self.registry.dummy)
        return Value()

    def _coerce_arg(self, wordtype: ValueType, arg: Value) -> Value:
        if wordtype == ValueType.INTEGER:
            arg.force_int()
        elif wordtype == ValueType.FLOAT:
            arg.force_float()
        elif wordtype in (ValueType.STRING, ValueType.CSTRING):
            arg.force_str()
        elif wordtype == ValueType.COND:
            self._force_cond(arg)
        elif wordtype == ValueType.CODE:
            self._force_code(arg)
        elif wordtype == ValueType.IDENT:
            self._force_ident(arg)
        return arg

    def _call_command(
        self, ident: Ident, args: list[Value], result: Value, ret: int, lookup: bool = False
    ) -> None:
        self._call_native(ident, self.marshal_args(ident, args, lookup), result, ret)

    def _call_ident(self, ident: Ident, args: list[Value], result: Value, ret: int) -> None:
        """Call any ident by kind with untyped arguments."""
        kind = ident.type
        if ident.fun is not None:
            self._call_command(ident, args, result, ret)
            return
        if kind == IdentType.VAR:
            if args:
                self.registry.set_var_components(ident, args)
            else:
                self.console.info(self.registry.format_var(ident))
        elif kind == IdentType.FLOAT_VAR:
            if args:
                self.registry.set_float_var_checked(ident, args[0].get_float())
            else:
                self.console.info(self.registry.format_var(ident))
        elif kind == IdentType.STRING_VAR:
            if args:
                self.registry.set_string_var_checked(ident, args[0].get_str())
            else:
                self.console.info(self.registry.format_var(ident))
        elif kind == IdentType.ALIAS:
            if ident.index < MAX_ARGS and not self.scope.is_bound(ident):
                result.set_null()
            elif ident.value.type == ValueType.NULL:
                self._unknown_command(ident.name, result)
            else:
                self.call_alias(ident, args, result)
        else:
            self._unknown_command(ident.name, result)
        result.force(ret)

    def _unknown_command(self, name: str, result: Value) -> None:
        if check_number(name):
            result.set_str(name)
            return
        self.debug_code(constants.MSG_UNKNOWN_COMMAND % name)
        result.set_null()

    # ── Coercions of stack values ────────────────────────────────

    def _force_code(self, value: Value) -> None:
        if value.type == ValueType.CODE:
            return
        if value.type == ValueType.NULL:
            value.set_code(EMPTY_PROGRAM)
            return
        program = self.compile(value.get_str())
        value.set_code(program if program is not None else EMPTY_PROGRAM)

    def _force_cond(self, value: Value) -> None:
        if not value.is_string():
            return
        if value.data:
            self._force_code(value)
        else:
            value.set_null()

    def _force_ident(self, value: Value) -> Ident:
        if value.type == ValueType.IDENT:
            return value.data
        if value.is_string():
            ident = self.registry.lookup_or_create_unknown(value.data)
        else:
            ident = self.registry.dummy
        self.scope.bind_arg(ident)
        value.set_ident(ident)
        return ident

    # ── Dispatch loop ────────────────────────────────────────────

    def _run(self, program: Program, result: Value) -> None:
        """Run `program` from its first word, leaving its value in `result`."""
        result.set_null()
        if self.depth >= self.config.max_run_depth:
            self.debug_code(constants.MSG_RECURSION_LIMIT)
            return
        self.depth += 1
        if self.depth > self.stats.max_depth:
            self.stats.max_depth = self.depth
        try:
            self._loop(_Frame(program, result))
        finally:
            self.depth -= 1

    def _loop(self, frame: _Frame) -> None:
        code = frame.program.code
        ops = self._ops
        stats = self.stats
        while True:
            word = code[frame.ip]
            frame.ip += 1
            stats.instructions += 1
            if ops[word & OP_MASK](frame, word):
                return

    def _nested(self, frame: _Frame, result: Value) -> None:
        """Run the code following ENTER until its EXIT, in a fresh stack."""
        inner = _Frame(frame.program, result, frame.ip)
        self._loop(inner)
        frame.ip = inner.ip

    # Result register

    def _op_null(self, f: _Frame, word: int) -> None:
        f.result.set_null()
        f.result.force(ret_of(word))

    def _op_true(self, f: _Frame, word: int) -> None:
        f.result.set_int(1)
        f.result.force(ret_of(word))

    def _op_false(self, f: _Frame, word: int) -> None:
        f.result.set_int(0)
        f.result.force(ret_of(word))

    def _op_not(self, f: _Frame, word: int) -> None:
        f.result.set_int(0 if f.stack.pop().get_bool() else 1)
        f.result.force(ret_of(word))

    # Stack and nested runs

    def _op_pop(self, f: _Frame, word: int) -> None:
        f.stack.pop()

    def _op_enter(self, f: _Frame, word: int) -> None:
        value = Value()
        self._nested(f, value)
        f.stack.append(value)

    def _op_enter_result(self, f: _Frame, word: int) -> None:
        self._nested(f, f.result)

    def _op_exit(self, f: _Frame, word: int) -> bool:
        f.result.force(ret_of(word))
        return True

    def _op_result_arg(self, f: _Frame, word: int) -> None:
        f.stack.append(f.result.get_val())
        f.result.set_null()

    # Literals

    def _op_val(self, f: _Frame, word: int) -> None:
        ret = ret_of(word)
        if ret == ValueType.NULL:
            f.stack.append(Value())
            return
        constant = f.program.constants[_operand(word)]
        if ret == ValueType.STRING:
            f.stack.append(Value.of_str(constant))
        elif ret == ValueType.INTEGER:
            f.stack.append(Value.of_int(constant))
        else:
            f.stack.append(Value.of_float(constant))

    def _op_vali(self, f: _Frame, word: int) -> None:
        value = Value.of_int(_operand(word))
        value.force(ret_of(word))
        f.stack.append(value)

    def _op_dup(self, f: _Frame, word: int) -> None:
        value = f.stack[-1].get_val()
        value.force(ret_of(word))
        f.stack.append(value)

    def _op_block(self, f: _Frame, word: int) -> None:
        f.stack.append(Value.of_code(f.program.constants[_operand(word)]))

    def _op_empty(self, f: _Frame, word: int) -> None:
        f.stack.append(Value.of_code(EMPTY_PROGRAM))

    def _op_compile(self, f: _Frame, word: int) -> None:
        self._force_code(f.stack[-1])

    def _op_cond(self, f: _Frame, word: int) -> None:
        self._force_cond(f.stack[-1])

    def _op_force(self, f: _Frame, word: int) -> None:
        f.stack[-1].force(ret_of(word))

    def _op_result(self, f: _Frame, word: int) -> None:
        f.result.set(f.stack.pop().get_val())
        f.result.force(ret_of(word))

    # Ident handles

    def _op_ident(self, f: _Frame, word: int) -> None:
        f.stack.append(Value.of_ident(self.registry.identmap[_operand(word)]))

    def _op_identarg(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.scope.bind_arg(ident)
        f.stack.append(Value.of_ident(ident))

    def _op_identu(self, f: _Frame, word: int) -> None:
        self._force_ident(f.stack[-1])

    # Native command calls

    def _command_ident(self, word: int) -> Ident:
        return self.registry.identmap[_index(word)]

    def _op_com(self, f: _Frame, word: int) -> None:
        ident = self._command_ident(word)
        args = f.pop_args(_argc(word))
        if ident.fun is None:
            self._call_ident(ident, args, f.result, ret_of(word))
            return
        self._call_native(ident, args, f.result, ret_of(word))

    def _op_comd(self, f: _Frame, word: int) -> None:
        ident = self._command_ident(word)
        args = f.pop_args(_argc(word))
        args.append(Value.of_int(1 if self.add_release_action(ident, args) else 0))
        self._call_native(ident, args, f.result, ret_of(word))

    def _op_comc(self, f: _Frame, word: int) -> None:
        ident = self._command_ident(word)
        args = f.pop_args(_argc(word))
        joined = Value.of_str(" ".join(a.get_str() for a in args))
        self._call_native(ident, [joined], f.result, ret_of(word))

    def _op_comv(self, f: _Frame, word: int) -> None:
        ident = self._command_ident(word)
        args = f.pop_args(_argc(word))
        self._call_native(ident, args, f.result, ret_of(word))

    # Concatenation

    def _concat(self, f: _Frame, word: int, sep: str) -> None:
        args = f.pop_args(_operand(word))
        value = Value.of_str(sep.join(a.get_str() for a in args))
        value.force(ret_of(word))
        f.stack.append(value)

    def _op_conc(self, f: _Frame, word: int) -> None:
        self._concat(f, word, " ")

    def _op_concw(self, f: _Frame, word: int) -> None:
        self._concat(f, word, "")

    def _op_concm(self, f: _Frame, word: int) -> None:
        self._concat(f, word, "")

    # Variables

    def _push_ident_value(self, f: _Frame, ident: Ident, word: int) -> None:
        value = ident.get_value()
        value.force(ret_of(word))
        f.stack.append(value)

    def _op_svar(self, f: _Frame, word: int) -> None:
        self._push_ident_value(f, self.registry.identmap[_operand(word)], word)

    _op_ivar = _op_svar
    _op_fvar = _op_svar

    def _op_svar1(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.registry.set_string_var_checked(ident, f.stack.pop().get_str())

    def _op_ivar1(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.registry.set_var_checked(ident, f.stack.pop().get_int())

    def _op_ivar2(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.registry.set_var_components(ident, f.pop_args(2))

    def _op_ivar3(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.registry.set_var_components(ident, f.pop_args(3))

    def _op_fvar1(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.registry.set_float_var_checked(ident, f.stack.pop().get_float())

    # Aliases

    def _op_lookup(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        if ident.type == IdentType.ALIAS and ident.flags & IdentFlag.UNKNOWN:
            self.debug_code(constants.MSG_UNKNOWN_ALIAS_LOOKUP % ident.name)
            f.stack.append(Value())
            return
        self._push_ident_value(f, ident, word)

    def _op_lookuparg(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        if not self.scope.is_bound(ident):
            value = Value()
            value.force(ret_of(word))
            f.stack.append(value)
            return
        self._push_ident_value(f, ident, word)

    def _op_lookupu(self, f: _Frame, word: int) -> None:
        value = f.stack[-1]
        ret = ret_of(word)
        if not value.is_string():
            value.force(ret)
            return
        name = value.data
        ident = self.registry.lookup(name)
        if ident is None and name and not check_number(name):
            ident = self.registry.lookup_or_create_unknown(name)
        if ident is None or (ident.type == IdentType.ALIAS and ident.flags & IdentFlag.UNKNOWN):
            self.debug_code(constants.MSG_UNKNOWN_ALIAS_LOOKUP % name)
            f.stack[-1] = Value()
            return
        if ident.is_var():
            found = ident.get_value()
        elif ident.type == IdentType.ALIAS:
            if ident.index < MAX_ARGS and not self.scope.is_bound(ident):
                found = Value()
            else:
                found = ident.get_value()
        elif ident.fun is not None:
            found = Value()
            self._call_command(ident, [], found, ValueType.NULL, lookup=True)
        else:
            self.debug_code(constants.MSG_UNKNOWN_ALIAS_LOOKUP % name)
            found = Value()
        found.force(ret)
        f.stack[-1] = found

    def _op_alias(self, f: _Frame, word: int) -> None:
        self.assign(self.registry.identmap[_operand(word)], f.stack.pop())

    def _op_aliasarg(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_operand(word)]
        self.scope.set_arg(ident, f.stack.pop().get_val())

    def _op_aliasu(self, f: _Frame, word: int) -> None:
        value = f.stack.pop()
        name = f.stack.pop().get_str()
        self.set_alias(name, value)

    def _op_call(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_index(word)]
        args = f.pop_args(_argc(word))
        if ident.type != IdentType.ALIAS:
            self._call_ident(ident, args, f.result, ret_of(word))
            return
        if ident.flags & IdentFlag.UNKNOWN:
            self.debug_code(constants.MSG_UNKNOWN_COMMAND % ident.name)
            f.result.set_null()
            f.result.force(ret_of(word))
            return
        self.call_alias(ident, args, f.result)
        f.result.force(ret_of(word))

    def _op_callarg(self, f: _Frame, word: int) -> None:
        ident = self.registry.identmap[_index(word)]
        args = f.pop_args(_argc(word))
        if not self.scope.is_bound(ident):
            f.result.set_null()
        else:
            self.call_alias(ident, args, f.result)
        f.result.force(ret_of(word))

    def _op_callu(self, f: _Frame, word: int) -> bool | None:
        args = f.pop_args(_operand(word))
        head = f.stack.pop()
        ret = ret_of(word)
        if not head.is_string():
            f.result.set(head.get_val())
            f.result.force(ret)
            return None
        ident = self.registry.lookup(head.data)
        if ident is None:
            self._unknown_command(head.data, f.result)
            f.result.force(ret)
            return None
        if ident.type == IdentType.LOCAL:
            return self._run_local(f, [self._force_ident(a) for a in args])
        self._call_ident(ident, args, f.result, ret)
        return None

    # Statements

    def _op_print(self, f: _Frame, word: int) -> None:
        self.console.info(self.registry.format_var(self.registry.identmap[_operand(word)]))

    def _op_local(self, f: _Frame, word: int) -> bool:
        idents = [v.data for v in f.pop_args(_operand(word)) if v.type == ValueType.IDENT]
        return self._run_local(f, idents)

    def _run_local(self, f: _Frame, idents: list[Ident]) -> bool:
        """Shadow `idents` for the rest of the current block."""
        for ident in idents:
            ScopeStack.push_alias(ident)
        try:
            self._nested(f, f.result)
        finally:
            for ident in reversed(idents):
                ScopeStack.pop_alias(ident)
        return True

    def _op_do(self, f: _Frame, word: int) -> None:
        code = f.stack.pop()
        f.result.set(self.execute_code(code))
        f.result.force(ret_of(word))

    def _op_doargs(self, f: _Frame, word: int) -> None:
        f.result.set(self.execute_doargs(f.stack.pop()))
        f.result.force(ret_of(word))

    # Control flow

    def _op_jump(self, f: _Frame, word: int) -> None:
        f.ip += _operand(word)

    def _op_jump_true(self, f: _Frame, word: int) -> None:
        if self.execute_cond(f.stack.pop()):
            f.ip += _operand(word)

    def _op_jump_false(self, f: _Frame, word: int) -> None:
        if not self.execute_cond(f.stack.pop()):
            f.ip += _operand(word)

    def _op_jump_result_true(self, f: _Frame, word: int) -> None:
        if f.result.get_bool():
            f.ip += _operand(word)

    def _op_jump_result_false(self, f: _Frame, word: int) -> None:
        if not f.result.get_bool():
            f.ip += _operand(word)
