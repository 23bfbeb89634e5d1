"""Saved-config writer: persistent vars and aliases as re-executable script."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from . import constants
from .idents import IdentFlag, IdentType
from .registry import IdentRegistry
from .text import escape_id, escape_string, unescape_string, validate_block
from .values import ValueType, format_float

if TYPE_CHECKING:
    from .vm import VirtualMachine

logger = logging.getLogger(__name__)

__all__ = [
    "escape_id",
    "escape_string",
    "format_config",
    "load_config",
    "unescape_string",
    "validate_block",
    "write_config",
]


def _var_line(ident) -> str:
    value = ident.storage.value
    if ident.type == IdentType.VAR:
        text = "%d" % value
    elif ident.type == IdentType.FLOAT_VAR:
        text = format_float(value)
    else:
        text = escape_string(value)
    return f"{escape_id(ident.name)} {text}"


def _alias_line(ident) -> str | None:
    value = ident.value
    if value.type == ValueType.STRING:
        if not value.data:
            return None
        if not validate_block(value.data):
            return f"{escape_id(ident.name)} = {escape_string(value.data)}"
    elif value.type not in (ValueType.INTEGER, ValueType.FLOAT):
        return None
    return f"{escape_id(ident.name)} = [{value.get_str()}]"


def format_config(
    registry: IdentRegistry,
    autoexec: str = constants.DEFAULT_AUTOEXEC,
    default_config: str = constants.DEFAULT_CONFIG,
) -> str:
    """Render every persistent var and alias as config script text.

    Args:
        registry: The registry to snapshot.
        autoexec: Autoexec path named in the header comment.
        default_config: Default config path named in the header comment.

    Returns:
        The config file contents.
    """
    idents = sorted(registry, key=lambda ident: ident.name)
    header = constants.CONFIG_HEADER_TEMPLATE.format(
        default_config=default_config, autoexec=autoexec
    )
    lines = [header.rstrip("\n"), ""]
    lines.extend(
        _var_line(ident)
        for ident in idents
        if ident.is_var() and ident.flags & IdentFlag.PERSIST
    )
    lines.append("")
    for ident in idents:
        if ident.type != IdentType.ALIAS or not ident.flags & IdentFlag.PERSIST:
            continue
        if ident.flags & IdentFlag.OVERRIDDEN:
            continue
        line = _alias_line(ident)
        if line is not None:
            lines.append(line)
    return "\n".join(lines) + "\n"


def write_config(
    registry: IdentRegistry,
    path: str = constants.DEFAULT_SAVED_CONFIG,
    autoexec: str = constants.DEFAULT_AUTOEXEC,
    default_config: str = constants.DEFAULT_CONFIG,
) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(format_config(registry, autoexec, default_config))
    logger.info("Wrote config to %s", path)


def load_config(vm: VirtualMachine) -> bool:
    """Startup sequence: saved config (or the defaults), then autoexec.

    Everything defined while loading is flagged PERSIST, so it is written
    back out by the next `write_config`.

    Returns:
        True when the saved config was found.
    """
    config = vm.config
    with vm.registry.flag_context(IdentFlag.PERSIST):
        found = vm.exec_file(config.saved_config, msg=False)
        if not found:
            vm.exec_file(config.default_config)
        vm.exec_file(config.autoexec, msg=False)
    return found
