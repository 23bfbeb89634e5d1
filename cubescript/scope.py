"""Argument scope stack: recursive alias calls shadowing arg1..arg25."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .constants import MAX_ARGS
from .idents import Ident, IdentFlag, IdentType
from .values import Value

logger = logging.getLogger(__name__)

ALL_ARGS = (1 << MAX_ARGS) - 1
UNDO_FLAG = 1 << MAX_ARGS


def _bits(mask: int):
    index = 0
    while mask:
        if mask & 1:
            yield index
        mask >>= 1
        index += 1


@dataclass
class ScopeFrame:
    """One alias invocation: which argN idents it currently shadows."""

    owner: Ident | None
    used_args: int
    next: ScopeFrame | None = None
    saved: dict[int, Value] = field(default_factory=dict)
    caller: ScopeFrame | None = None

    @property
    def is_undo(self) -> bool:
        return bool(self.used_args & UNDO_FLAG)


class ScopeStack:
    """Linked frames over the per-ident value stacks.

    Every arg ident keeps a LIFO of shadowed values; a frame records which
    of them it pushed so `leave` can pop exactly those, including args that
    were bound lazily while the alias ran.
    """

    def __init__(self, args: list[Ident]):
        self.args = args
        self.root = ScopeFrame(owner=None, used_args=ALL_ARGS)
        self.top = self.root

    def depth(self) -> int:
        depth = 0
        frame = self.top
        while frame is not self.root:
            depth += 1
            frame = frame.next
        return depth

    def frames(self):
        frame = self.top
        while frame is not self.root:
            yield frame
            frame = frame.next

    # ── Value stacks ─────────────────────────────────────────────

    @staticmethod
    def push_arg(ident: Ident, value: Value) -> None:
        ident.stack.append(ident.value)
        ident.value = value
        ident.code = None

    @staticmethod
    def pop_arg(ident: Ident) -> None:
        if not ident.stack:
            return
        ident.value = ident.stack.pop()
        ident.code = None

    @staticmethod
    def push_alias(ident: Ident) -> None:
        if ident.type == IdentType.ALIAS and ident.index >= MAX_ARGS:
            ScopeStack.push_arg(ident, Value())
            ident.flags &= ~IdentFlag.UNKNOWN

    @staticmethod
    def pop_alias(ident: Ident) -> None:
        if ident.type == IdentType.ALIAS and ident.index >= MAX_ARGS:
            ScopeStack.pop_arg(ident)

    # ── Frames ───────────────────────────────────────────────────

    def enter(self, owner: Ident | None, args: list[Value]) -> ScopeFrame:
        for index, value in enumerate(args):
            self.push_arg(self.args[index], value)
        frame = ScopeFrame(owner=owner, used_args=(1 << len(args)) - 1, next=self.top)
        self.top = frame
        return frame

    def leave(self, frame: ScopeFrame) -> None:
        self.top = frame.next
        for index in _bits(frame.used_args & ALL_ARGS):
            self.pop_arg(self.args[index])

    def is_bound(self, ident: Ident) -> bool:
        return bool(self.top.used_args & (1 << ident.index))

    def bind_arg(self, ident: Ident) -> None:
        """Bind an unused arg to Null so it can be assigned in this frame."""
        if ident.index < MAX_ARGS and not self.is_bound(ident):
            self.push_arg(ident, Value())
            self.top.used_args |= 1 << ident.index

    def set_arg(self, ident: Ident, value: Value) -> None:
        if self.is_bound(ident):
            ident.value = value
            ident.code = None
        else:
            self.push_arg(ident, value)
            self.top.used_args |= 1 << ident.index

    # ── doargs ───────────────────────────────────────────────────

    def undo_args(self) -> ScopeFrame | None:
        """Expose the caller's argument values; returns the link to redo."""
        prev = self.top
        undos = 0
        while prev is not self.root:
            if prev.is_undo:
                undos += 1
            elif undos > 0:
                undos -= 1
            else:
                caller = prev.next
                saved: dict[int, Value] = {}
                for index in _bits(self.top.used_args & ALL_ARGS):
                    ident = self.args[index]
                    saved[index] = ident.value
                    self.pop_arg(ident)
                link = ScopeFrame(
                    owner=self.top.owner,
                    used_args=UNDO_FLAG | caller.used_args,
                    next=self.top,
                    saved=saved,
                    caller=caller,
                )
                self.top = link
                return link
            prev = prev.next
        return None

    def redo_args(self, link: ScopeFrame | None) -> None:
        if link is None or self.top is not link:
            return
        caller = link.caller
        caller.used_args |= link.used_args & ALL_ARGS
        self.top = link.next
        for index, value in link.saved.items():
            ident = self.args[index]
            ident.stack.append(ident.value)
            ident.value = value
            ident.code = None


class LoopBinding:
    """Binds successive iteration values to a loop ident.

    The first value shadows the ident's current value; later values replace
    it in place; `release` restores the shadowed value.
    """

    def __init__(self, ident: Ident):
        self.ident = ident
        self.pushed = False

    def set(self, value: Value) -> None:
        if self.pushed:
            self.ident.value = value
            self.ident.code = None
            return
        ScopeStack.push_arg(self.ident, value)
        self.ident.flags &= ~IdentFlag.UNKNOWN
        self.pushed = True

    def release(self) -> None:
        if self.pushed:
            ScopeStack.pop_arg(self.ident)
            self.pushed = False

    def __enter__(self) -> LoopBinding:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
