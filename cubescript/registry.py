"""Ident registry: the single symbol table for vars, aliases and commands."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator

from . import constants
from .console import Console, LoggingConsole
from .errors import DuplicateIdentError
from .idents import Ident, IdentFlag, IdentType, VarStorage
from .signature import NativeCommand, parse_signature
from .values import Value, ValueType, check_number, format_float

logger = logging.getLogger(__name__)

OnChange = Callable[[Ident], None]


class IdentRegistry:
    """Name -> Ident map plus the stable index table bytecode refers to.

    Built once at startup: the argument idents take indices 0..MAX_ARGS-1,
    followed by the dummy ident, the `local` keyword, the engine vars and
    then every command in `commands`, in table order.
    """

    def __init__(
        self,
        commands: Iterable[NativeCommand] = (),
        console: Console | None = None,
    ):
        self.idents: dict[str, Ident] = {}
        self.identmap: list[Ident] = []
        self.ident_flags = IdentFlag.NONE
        self.nodebug = 0
        self.console = console or LoggingConsole()
        self.trace: Callable[[], None] | None = None
        self._init_idents()
        for command in commands:
            self.declare_command(command.name, command.signature, command.fn, command.kind)
        logger.debug("Registry initialised with %d idents", len(self.identmap))

    def _init_idents(self) -> None:
        for i in range(constants.MAX_ARGS):
            self._add(
                Ident(constants.ARG_NAME_TEMPLATE.format(n=i + 1), IdentType.ALIAS, IdentFlag.ARG)
            )
        self.dummy = self._add(Ident(constants.DUMMY_IDENT_NAME, IdentType.ALIAS, IdentFlag.UNKNOWN))
        self._add(Ident(constants.KEYWORD_LOCAL, IdentType.LOCAL))
        self.numargs = self.declare_var(
            constants.NUMARGS_VAR_NAME, constants.MAX_ARGS, 0, 0
        )
        self.dbgalias = self.declare_var(
            constants.DBGALIAS_VAR_NAME, 0, constants.MAX_DBG_ALIAS, 1000
        )

    def _add(self, ident: Ident) -> Ident:
        ident.index = len(self.identmap)
        self.identmap.append(ident)
        self.idents[ident.name] = ident
        return ident

    # ── Lookup ───────────────────────────────────────────────────

    def __contains__(self, name: str) -> bool:
        return name in self.idents

    def __len__(self) -> int:
        return len(self.identmap)

    def __iter__(self) -> Iterator[Ident]:
        return iter(self.identmap)

    def lookup(self, name: str) -> Ident | None:
        return self.idents.get(name)

    def lookup_or_create_unknown(self, name: str) -> Ident:
        ident = self.idents.get(name)
        if ident is not None:
            return ident
        if check_number(name):
            self.debug(constants.MSG_NOT_IDENT_NAME % name)
            return self.dummy
        logger.debug("Creating placeholder ident %s", name)
        return self._add(Ident(name, IdentType.ALIAS, IdentFlag.UNKNOWN))

    def arg(self, index: int) -> Ident:
        return self.identmap[index]

    def _claim(self, name: str, kind: IdentType) -> Ident | None:
        """Existing ident of the same kind (or an unknown placeholder) to reuse."""
        ident = self.idents.get(name)
        if ident is None:
            return None
        if ident.type == kind:
            return ident
        if ident.type == IdentType.ALIAS and ident.flags & IdentFlag.UNKNOWN:
            ident.type = kind
            ident.flags = IdentFlag.NONE
            ident.value = Value()
            ident.code = None
            return ident
        raise DuplicateIdentError(name, f"already declared as {ident.type.name.lower()}")

    # ── Declarations ─────────────────────────────────────────────

    def _declare_var(
        self,
        kind: IdentType,
        name: str,
        min_value: Any,
        cur: Any,
        max_value: Any,
        storage: VarStorage | None,
        on_change: OnChange | None,
        flags: IdentFlag,
    ) -> Ident:
        if min_value is not None and min_value > max_value:
            flags |= IdentFlag.READONLY
        storage = storage or VarStorage(cur)
        storage.value = cur
        ident = self._claim(name, kind)
        if ident is None:
            ident = self._add(Ident(name, kind))
        ident.flags = flags
        ident.min_value = min_value
        ident.max_value = max_value
        ident.storage = storage
        ident.on_change = on_change
        return ident

    def declare_var(
        self,
        name: str,
        min_value: int,
        cur: int,
        max_value: int,
        storage: VarStorage | None = None,
        on_change: OnChange | None = None,
        flags: IdentFlag = IdentFlag.NONE,
    ) -> Ident:
        """Declare an integer variable; min > max makes it read-only."""
        return self._declare_var(
            IdentType.VAR, name, min_value, cur, max_value, storage, on_change, flags
        )

    def declare_float_var(
        self,
        name: str,
        min_value: float,
        cur: float,
        max_value: float,
        storage: VarStorage | None = None,
        on_change: OnChange | None = None,
        flags: IdentFlag = IdentFlag.NONE,
    ) -> Ident:
        return self._declare_var(
            IdentType.FLOAT_VAR,
            name,
            float(min_value),
            float(cur),
            float(max_value),
            storage,
            on_change,
            flags,
        )

    def declare_string_var(
        self,
        name: str,
        cur: str,
        storage: VarStorage | None = None,
        on_change: OnChange | None = None,
        flags: IdentFlag = IdentFlag.NONE,
    ) -> Ident:
        return self._declare_var(
            IdentType.STRING_VAR, name, None, cur, None, storage, on_change, flags
        )

    def declare_alias(
        self, name: str, value: Value | str, flags: IdentFlag = IdentFlag.NONE
    ) -> Ident:
        if check_number(name):
            raise ValueError(constants.MSG_CANNOT_ALIAS_NUMBER % name)
        if not isinstance(value, Value):
            value = Value.of_str(value)
        ident = self._claim(name, IdentType.ALIAS)
        if ident is None:
            ident = self._add(Ident(name, IdentType.ALIAS))
        ident.set_alias_value(value)
        ident.flags = (ident.flags & IdentFlag.ARG) | flags
        return ident

    def declare_command(
        self,
        name: str,
        signature: str,
        fun: Callable[..., Any] | None,
        kind: IdentType = IdentType.COMMAND,
    ) -> Ident:
        existing = self.idents.get(name)
        if existing is not None and not (
            existing.type == IdentType.ALIAS and existing.flags & IdentFlag.UNKNOWN
        ):
            raise DuplicateIdentError(name, "command already registered")
        parsed = parse_signature(signature, name)
        ident = self._claim(name, kind) or self._add(Ident(name, kind))
        ident.signature = parsed
        ident.fun = fun
        return ident

    # ── Variable assignment ──────────────────────────────────────

    def _get_var(self, name: str) -> Ident:
        ident = self.idents.get(name)
        if ident is None or not ident.is_var():
            raise KeyError(name)
        return ident

    def _begin_override(self, ident: Ident) -> bool:
        """Apply override bookkeeping before a write; False rejects the write."""
        if self.ident_flags & IdentFlag.OVERRIDDEN or ident.flags & IdentFlag.OVERRIDE:
            if ident.flags & IdentFlag.PERSIST:
                self.debug(constants.MSG_CANNOT_OVERRIDE % ident.name)
                return False
            if not ident.flags & IdentFlag.OVERRIDDEN:
                ident.override_value = (
                    ident.storage.value if ident.is_var() else ident.value
                )
                ident.flags |= IdentFlag.OVERRIDDEN
        elif ident.flags & IdentFlag.OVERRIDDEN:
            ident.flags &= ~IdentFlag.OVERRIDDEN
        return True

    def clamp_int(self, ident: Ident, value: int) -> int:
        lo, hi = ident.min_value, ident.max_value
        if lo <= value <= hi:
            return value
        value = lo if value < lo else hi
        if ident.flags & IdentFlag.HEX:
            template = (
                "valid range for %s is %d..0x%X" if lo <= 255 else "valid range for %s is 0x%X..0x%X"
            )
        else:
            template = "valid range for %s is %d..%d"
        self.debug(template % (ident.name, lo, hi))
        return value

    def clamp_float(self, ident: Ident, value: float) -> float:
        lo, hi = ident.min_value, ident.max_value
        if lo <= value <= hi:
            return value
        self.debug(
            "valid range for %s is %s..%s" % (ident.name, format_float(lo), format_float(hi))
        )
        return lo if value < lo else hi

    def set_var(
        self, name: str, value: Any, run_callback: bool = True, clamp: bool = True
    ) -> None:
        """Host-side write to any variable kind.

        Raises:
            KeyError: when `name` is not a declared variable.
        """
        ident = self._get_var(name)
        if ident.flags & IdentFlag.READONLY:
            self.debug(constants.MSG_READ_ONLY % name)
            return
        if not self._begin_override(ident):
            return
        if ident.type == IdentType.VAR:
            value = int(value)
            if clamp:
                value = self.clamp_int(ident, value)
        elif ident.type == IdentType.FLOAT_VAR:
            value = float(value)
            if clamp:
                value = self.clamp_float(ident, value)
        else:
            value = str(value)
        ident.storage.value = value
        if run_callback:
            ident.changed()

    def get_var(self, name: str) -> Any:
        return self._get_var(name).storage.value

    def set_var_checked(self, ident: Ident, value: int) -> None:
        if ident.flags & IdentFlag.READONLY:
            self.debug(constants.MSG_READ_ONLY % ident.name)
            return
        if not self._begin_override(ident):
            return
        ident.storage.value = self.clamp_int(ident, value)
        ident.changed()

    def set_var_components(self, ident: Ident, values: list[Value]) -> None:
        """`var r g b` style assignment for hex vars."""
        value = values[0].get_int()
        if ident.flags & IdentFlag.HEX and len(values) > 1:
            value = (value << 16) | (values[1].get_int() << 8)
            if len(values) > 2:
                value |= values[2].get_int()
        self.set_var_checked(ident, value)

    def set_float_var_checked(self, ident: Ident, value: float) -> None:
        if ident.flags & IdentFlag.READONLY:
            self.debug(constants.MSG_READ_ONLY % ident.name)
            return
        if not self._begin_override(ident):
            return
        ident.storage.value = self.clamp_float(ident, value)
        ident.changed()

    def set_string_var_checked(self, ident: Ident, value: str) -> None:
        if ident.flags & IdentFlag.READONLY:
            self.debug(constants.MSG_READ_ONLY % ident.name)
            return
        if not self._begin_override(ident):
            return
        ident.storage.value = value
        ident.changed()

    def format_var(self, ident: Ident) -> str:
        """Console line printed for a bare `varname` statement."""
        value = ident.storage.value
        if ident.type == IdentType.FLOAT_VAR:
            return "%s = %s" % (ident.name, format_float(value))
        if ident.type == IdentType.STRING_VAR:
            return ("%s = [%s]" if '"' in value else '%s = "%s"') % (ident.name, value)
        if value < 0:
            return "%s = %d" % (ident.name, value)
        if ident.flags & IdentFlag.HEX and ident.max_value == 0xFFFFFF:
            return "%s = 0x%.6X (%d, %d, %d)" % (
                ident.name,
                value,
                (value >> 16) & 0xFF,
                (value >> 8) & 0xFF,
                value & 0xFF,
            )
        if ident.flags & IdentFlag.HEX:
            return "%s = 0x%X" % (ident.name, value)
        return "%s = %d" % (ident.name, value)

    # ── Aliases ──────────────────────────────────────────────────

    def assign_alias(self, ident: Ident, value: Value) -> None:
        """Rebind a non-argument alias; it takes on the current ident flags."""
        ident.set_alias_value(value)
        ident.flags = self.ident_flags

    def create_alias(self, name: str, value: Value) -> Ident:
        return self._add(Ident(name, IdentType.ALIAS, self.ident_flags, value=value))

    def clear_override(self, ident: Ident) -> None:
        if not ident.flags & IdentFlag.OVERRIDDEN:
            return
        if ident.type == IdentType.ALIAS:
            if not (ident.value.type == ValueType.STRING and ident.value.data == ""):
                ident.set_alias_value(Value.of_str(""))
        elif ident.is_var():
            ident.storage.value = ident.override_value
            ident.changed()
        ident.flags &= ~IdentFlag.OVERRIDDEN

    def clear_overrides(self) -> None:
        for ident in self.identmap:
            self.clear_override(ident)

    def reset_var(self, name: str) -> None:
        ident = self.idents.get(name)
        if ident is None:
            return
        if ident.flags & IdentFlag.READONLY:
            self.debug(constants.MSG_READ_ONLY % name)
            return
        self.clear_override(ident)

    def clear_aliases(self) -> None:
        """Drop every alias body and compiled-code cache (shutdown cleanup)."""
        for ident in self.identmap:
            if ident.type == IdentType.ALIAS:
                ident.set_alias_value(Value())
                ident.stack.clear()

    # ── Flags and diagnostics ────────────────────────────────────

    @contextmanager
    def flag_context(self, flags: IdentFlag) -> Iterator[None]:
        """OR `flags` into the ident flags for the duration of the block."""
        saved = self.ident_flags
        self.ident_flags |= flags
        try:
            yield
        finally:
            self.ident_flags = saved

    def debug(self, message: str) -> None:
        if self.nodebug:
            logger.debug("suppressed: %s", message)
            return
        self.console.error(message)
        if self.trace is not None:
            self.trace()
