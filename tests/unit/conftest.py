"""Shared fixtures: a VM whose console output is captured for assertions."""

import pytest

from cubescript.console import Console, ConsoleLevel
from cubescript.run import create_vm
from cubescript.run_types import VMConfig


class RecordingConsole(Console):
    """Console that keeps every line instead of printing it."""

    def __init__(self):
        self.lines: list[tuple[ConsoleLevel, str]] = []

    def write(self, level: ConsoleLevel, message: str) -> None:
        self.lines.append((level, message))

    def messages(self, level: ConsoleLevel | None = None) -> list[str]:
        return [m for lv, m in self.lines if level is None or lv == level]

    def errors(self) -> list[str]:
        return self.messages(ConsoleLevel.ERROR)

    def infos(self) -> list[str]:
        return self.messages(ConsoleLevel.INFO)


@pytest.fixture
def console() -> RecordingConsole:
    return RecordingConsole()


@pytest.fixture
def vm(console):
    machine = create_vm(VMConfig(), console=console)
    # Keep diagnostics short: no alias call trace after each message.
    machine.registry.dbgalias.storage.value = 0
    return machine
