"""Orchestrator: create_vm() and run() entry points."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from .commands import Builtins
from .console import Console
from .registry import IdentRegistry
from .run_types import RunResult, VMConfig
from .signature import NativeCommand
from .vm import VirtualMachine

logger = logging.getLogger(__name__)


def create_vm(
    config: VMConfig = VMConfig(),
    commands: Iterable[NativeCommand] | None = None,
    console: Console | None = None,
) -> VirtualMachine:
    """Build a registry with the builtin commands (plus `commands`) and a VM.

    Args:
        config: VM configuration.
        commands: Extra host commands registered after the builtins.
        console: Output sink; defaults to the logging console.

    Returns:
        A ready VirtualMachine.
    """
    table = [*Builtins.TABLE, *(commands or ())]
    registry = IdentRegistry(table, console)
    logger.info("Created VM with %d idents", len(registry))
    return VirtualMachine(registry, config)


def run(
    source: str,
    config: VMConfig = VMConfig(),
    vm: VirtualMachine | None = None,
    name: str = "",
) -> RunResult:
    """Compile and execute one script, collecting timing statistics.

    Args:
        source: Script text.
        config: VM configuration, used when `vm` is not given.
        vm: An existing VM to run in; a fresh one is created otherwise.
        name: Source name used in compile error messages.

    Returns:
        A RunResult with the script's value and run statistics.
    """
    vm = vm or create_vm(config)
    result = RunResult(
        source_bytes=len(source.encode("utf-8")),
        source_lines=source.count("\n") + 1 if source else 0,
    )

    t0 = time.perf_counter()
    program = vm.compile(source, name)
    result.compile_time = time.perf_counter() - t0
    if program is None:
        result.ok = False
        result.stats = vm.stats
        return result
    result.code_words = len(program.code)

    t1 = time.perf_counter()
    result.value = vm.run_program(program)
    result.execution_time = time.perf_counter() - t1
    result.stats = vm.stats

    if vm.config.verbose:
        logger.info("\n%s", result.report())
    return result
