"""Builtin command tables handed to the registry at startup."""

from __future__ import annotations

from ..signature import NativeCommand
from . import control, core, lists, math, strings


class Builtins:
    """Table of every builtin command, in registration order."""

    TABLE: list[NativeCommand] = [
        *core.TABLE,
        *control.TABLE,
        *math.TABLE,
        *strings.TABLE,
        *lists.TABLE,
    ]
