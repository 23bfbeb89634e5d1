"""Command-line entry point: run script files and snippets."""

from __future__ import annotations

import argparse
import logging
import sys

from . import api
from .config import write_config
from .console import StreamConsole
from .errors import CompileError
from .run import create_vm, run
from .run_types import VMConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cubescript", description="CubeScript interpreter")
    parser.add_argument("files", nargs="*", help="Script files to execute in order")
    parser.add_argument(
        "--eval", "-e", action="append", default=[], help="Script snippet to execute"
    )
    parser.add_argument(
        "--path", "-p", action="append", default=[], help="Extra directory searched by exec"
    )
    parser.add_argument(
        "--dump", action="store_true", help="Print the bytecode listing instead of running"
    )
    parser.add_argument(
        "--stats", action="store_true", help="Print opcode counts and run statistics"
    )
    parser.add_argument(
        "--write-config", metavar="PATH", help="Write persistent idents to PATH afterwards"
    )
    parser.add_argument("--idents", action="store_true", help="List every registered ident")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = VMConfig(search_paths=tuple(args.path), verbose=args.verbose)
    vm = create_vm(config, console=StreamConsole())

    if args.idents:
        print("\n".join(api.ident_names(vm.registry)))
        return 0

    sources: list[tuple[str, str]] = []
    for path in args.files:
        try:
            with open(path, encoding="utf-8") as f:
                sources.append((path, f.read()))
        except (OSError, UnicodeDecodeError) as exc:
            print(f"could not read {path}: {exc}", file=sys.stderr)
            return 1
    sources.extend((f"-e{i + 1}", snippet) for i, snippet in enumerate(args.eval))

    if args.dump:
        for name, source in sources:
            try:
                print(f"═══ {name} ═══")
                print(api.dump_bytecode(source, vm))
            except CompileError as exc:
                print(str(exc), file=sys.stderr)
                return 1
        return 0

    status = 0
    for name, source in sources:
        result = run(source, vm=vm, name=name)
        if not result.ok:
            status = 1
            continue
        text = result.value.get_str()
        if text:
            print(text)
        if args.stats:
            print(result.report())
            for opcode, count in sorted(api.opcode_stats(source, vm).items()):
                print(f"  {opcode:<20} {count:>6}")

    if args.write_config:
        try:
            write_config(vm.registry, args.write_config, config.autoexec, config.default_config)
        except OSError as exc:
            print(f"could not write {args.write_config}: {exc}", file=sys.stderr)
            return 1
    return status


if __name__ == "__main__":
    sys.exit(main())
