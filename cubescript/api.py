"""Composable API functions.

Each function corresponds to a CLI workflow (--dump, --stats, -e) but is
callable programmatically without argparse.
"""

from __future__ import annotations

import logging
from typing import Any

from .bytecode import Program, count_opcodes, disassemble
from .registry import IdentRegistry
from .run import create_vm
from .run_types import VMConfig
from .values import Value, ValueType
from .vm import VirtualMachine

logger = logging.getLogger(__name__)


def compile_source(source: str, vm: VirtualMachine | None = None) -> Program:
    """Compile script text against a VM's registry.

    Args:
        source: Script text.
        vm: VM whose idents the code refers to; a fresh one by default.

    Returns:
        The compiled program.

    Raises:
        CompileError: If the source is malformed.
    """
    vm = vm or create_vm()
    return vm.compiler.compile(source)


def dump_bytecode(source: str, vm: VirtualMachine | None = None) -> str:
    """Compile source and return a human-readable listing, one word per line."""
    return disassemble(compile_source(source, vm))


def opcode_stats(source: str, vm: VirtualMachine | None = None) -> dict[str, int]:
    """Compile source and return opcode frequency counts.

    Args:
        source: Script text.
        vm: VM to compile against.

    Returns:
        A dict mapping opcode names to their occurrence counts, nested
        blocks included.
    """
    return count_opcodes(compile_source(source, vm))


def to_python(value: Value) -> Any:
    if value.type == ValueType.INTEGER:
        return value.data
    if value.type == ValueType.FLOAT:
        return value.data
    if value.is_string():
        return value.data
    return None


def evaluate(source: str, vm: VirtualMachine | None = None, config: VMConfig = VMConfig()) -> Any:
    """Run source and return its result as a plain Python value.

    Returns:
        An int, float or str, or None for a null result (or a compile error).
    """
    vm = vm or create_vm(config)
    logger.info("Evaluating %d chars", len(source))
    return to_python(vm.execute(source))


def ident_names(registry: IdentRegistry) -> list[str]:
    return sorted(ident.name for ident in registry)
