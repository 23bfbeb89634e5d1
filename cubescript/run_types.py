"""Run pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass, field

from . import constants
from .values import Value


@dataclass(frozen=True)
class VMConfig:
    """Groups VM execution configuration."""

    max_run_depth: int = constants.MAX_RUN_DEPTH
    python_recursion_limit: int = 10000
    search_paths: tuple[str, ...] = ()
    saved_config: str = constants.DEFAULT_SAVED_CONFIG
    autoexec: str = constants.DEFAULT_AUTOEXEC
    default_config: str = constants.DEFAULT_CONFIG
    verbose: bool = False


@dataclass
class ExecutionStats:
    """Counters maintained by the VM while it runs."""

    instructions: int = 0
    alias_calls: int = 0
    command_calls: int = 0
    max_depth: int = 0


@dataclass
class RunResult:
    """Outcome of one `run()` call, with timing and size statistics."""

    ok: bool = True
    value: Value = field(default_factory=Value)
    source_bytes: int = 0
    source_lines: int = 0
    compile_time: float = 0.0
    execution_time: float = 0.0
    code_words: int = 0
    stats: ExecutionStats = field(default_factory=ExecutionStats)

    def report(self) -> str:
        lines = [
            "═══ Run Statistics ═══",
            f"  Source: {self.source_lines} lines, {self.source_bytes} bytes",
            "",
            f"  {'Stage':<20} {'Time':>10}  {'Output':>30}",
            f"  {'─' * 20} {'─' * 10}  {'─' * 30}",
        ]
        stages = [
            ("Compile", self.compile_time, f"{self.code_words} code words"),
            (
                "Execute (VM)",
                self.execution_time,
                f"{self.stats.instructions} instructions",
            ),
        ]
        for name, t, output in stages:
            time_str = f"{t * 1000:>8.1f}ms"
            lines.append(f"  {name:<20} {time_str:>10}  {output:>30}")
        lines.append(f"  {'─' * 20} {'─' * 10}  {'─' * 30}")
        total = self.compile_time + self.execution_time
        lines.append(f"  {'Total':<20} {total * 1000:>8.1f}ms")
        lines.append("")
        lines.append(
            f"  Calls: {self.stats.alias_calls} alias, {self.stats.command_calls} command,"
            f" max depth {self.stats.max_depth}"
        )
        lines.append(f"  Result: {self.value.get_str()!r} ({'ok' if self.ok else 'failed'})")
        return "\n".join(lines)
