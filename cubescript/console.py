"""Console sinks for script-visible output and diagnostics."""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import TextIO


class ConsoleLevel(Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Console(ABC):
    """Where `echo`, `error`, range warnings and debug messages go."""

    @abstractmethod
    def write(self, level: ConsoleLevel, message: str) -> None: ...

    def info(self, message: str) -> None:
        self.write(ConsoleLevel.INFO, message)

    def warn(self, message: str) -> None:
        self.write(ConsoleLevel.WARN, message)

    def error(self, message: str) -> None:
        self.write(ConsoleLevel.ERROR, message)


class LoggingConsole(Console):
    """Default sink: routes console lines to the `cubescript.console` logger."""

    _LEVELS = {
        ConsoleLevel.INFO: logging.INFO,
        ConsoleLevel.WARN: logging.WARNING,
        ConsoleLevel.ERROR: logging.ERROR,
    }

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger("cubescript.console")

    def write(self, level: ConsoleLevel, message: str) -> None:
        self._logger.log(self._LEVELS[level], "%s", message)


class StreamConsole(Console):
    """Plain text output for the command line; errors go to stderr."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        self._out = out or sys.stdout
        self._err = err or sys.stderr

    def write(self, level: ConsoleLevel, message: str) -> None:
        stream = self._out if level == ConsoleLevel.INFO else self._err
        print(message, file=stream)
