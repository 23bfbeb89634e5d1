"""Script error types."""

from __future__ import annotations

from dataclasses import dataclass


class ScriptError(Exception):
    """Base class for errors raised by the scripting layer."""


@dataclass
class CompileError(ScriptError):
    """Malformed source: unterminated strings, blocks or parentheses."""

    message: str
    line: int = 0
    source_name: str = ""

    def __str__(self) -> str:
        if self.source_name:
            return f"{self.source_name}:{self.line}: {self.message}"
        if self.line:
            return f"{self.line}: {self.message}"
        return self.message


class DuplicateIdentError(ScriptError):
    """A name was declared twice in a way that cannot be merged."""

    def __init__(self, name: str, reason: str = "already declared"):
        self.name = name
        super().__init__(f"{name}: {reason}")
