"""Deferred execution: the sleep queue and the trigger queue."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from .idents import Ident, IdentFlag

if TYPE_CHECKING:
    from .vm import VirtualMachine

logger = logging.getLogger(__name__)


@dataclass
class SleepCommand:
    due_ms: int
    command: str
    flags: IdentFlag


class SleepQueue:
    """Script commands scheduled by `sleep`, run from the host's frame tick."""

    def __init__(self):
        self.entries: list[SleepCommand] = []

    def __len__(self) -> int:
        return len(self.entries)

    def add(
        self, delay_ms: int, command: str, now_ms: int, flags: IdentFlag = IdentFlag.NONE
    ) -> SleepCommand:
        entry = SleepCommand(now_ms + max(delay_ms, 1), command, flags)
        self.entries.append(entry)
        logger.debug("Scheduled %r in %d ms", command, max(delay_ms, 1))
        return entry

    def check(self, now_ms: int, vm: VirtualMachine) -> int:
        """Run the earliest due entry under the ident flags it was scheduled with.

        At most one entry runs per call; ties go to the entry scheduled first.

        Returns:
            1 when an entry ran, otherwise 0.
        """
        due = [e for e in self.entries if e.due_ms <= now_ms]
        if not due:
            return 0
        entry = min(due, key=lambda e: e.due_ms)
        self.entries = [e for e in self.entries if e is not entry]
        with vm.registry.flag_context(entry.flags):
            vm.execute(entry.command)
        return 1

    def clear(self, clear_overrides: bool = False) -> None:
        if not clear_overrides:
            self.entries.clear()
            return
        self.entries = [e for e in self.entries if not e.flags & IdentFlag.OVERRIDDEN]


class TriggerQueue:
    """FIFO of idents whose on-change work the host drains later."""

    def __init__(self):
        self._queue: deque[Ident] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def push(self, ident: Ident) -> None:
        self._queue.append(ident)

    def pop(self) -> Ident | None:
        return self._queue.popleft() if self._queue else None

    def drain(self) -> Iterator[Ident]:
        while self._queue:
            yield self._queue.popleft()
