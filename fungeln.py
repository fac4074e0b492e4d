"""Funge-Lang command-line entry point."""
from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from cursor import RandomDirectionSampler
from extensions import FungeExtensionError, build_default_services, load_runtime_services
from interpreter import FungeRuntimeError, Interpreter, TracebackFormatter

__version__ = "0.1.0"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="funge-lang", description="Funge-Lang grid interpreter")
    parser.add_argument("program", help="Source file path, or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Record stack snapshots in the step log and tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the random direction operator")
    parser.add_argument("--max-steps", type=int, default=None, help="Abort after this many steps")
    parser.add_argument("--ext", dest="extensions", action="append", default=[], help="Extension module (.py) or directory of modules (repeatable)")
    parser.add_argument("--dump-grid", action="store_true", help="Print the final grid to stderr after the program terminates")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    if args.max_steps is not None and args.max_steps < 0:
        print("--max-steps must be non-negative", file=sys.stderr)
        return 1

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    try:
        services = load_runtime_services(args.extensions) if args.extensions else build_default_services()
    except FungeExtensionError as error:
        print(f"ExtensionError: {error}", file=sys.stderr)
        return 1

    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        verbose=args.verbose,
        services=services,
        sampler=RandomDirectionSampler(args.seed),
        max_steps=args.max_steps,
    )
    try:
        interpreter.run()
    except FungeRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    if args.dump_grid:
        print(interpreter.grid.render(), file=sys.stderr)
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
