"""hexpat-std entry point: call standard-library primitives against a data file."""

from __future__ import annotations
import argparse
import re
import shlex
import sys
from typing import Dict, List, Optional, Sequence

from evaluator import (
    LEVEL_ERROR,
    LEVEL_INFO,
    EvaluationContext,
    Evaluator,
    FileProvider,
    LogConsole,
)
from handles import FileHandleTable
from libraries import LibraryError, build_default_registry
from literals import (
    EvaluationAbort,
    Literal,
    make_bool,
    make_char,
    make_float,
    make_signed,
    make_string,
    make_unsigned,
    render_literal,
)

_INT_LITERAL = re.compile(r"-?(?:0[xX][0-9a-fA-F]+|0[bB][01]+|0[oO][0-7]+|\d+)")
_FLOAT_LITERAL = re.compile(r"-?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")


def parse_argument(text: str) -> Literal:
    if _INT_LITERAL.fullmatch(text):
        number = int(text, 0) if not re.fullmatch(r"-?0\d+", text) else int(text, 10)
        return make_signed(number) if number < 0 else make_unsigned(number)
    if _FLOAT_LITERAL.fullmatch(text):
        return make_float(float(text))
    if len(text) == 3 and text[0] == text[2] == "'":
        return make_char(text[1])
    if text in ("true", "false"):
        return make_bool(text == "true")
    return make_string(text)


def format_abort(error: EvaluationAbort) -> str:
    where = error.function or "runtime"
    return f"{error.__class__.__name__}: {error.message} (function: {where})"


def _console_sink(level: str, message: str) -> None:
    if level == LEVEL_ERROR:
        # aborts are reported by run_call with the failing function attached
        return
    if level == LEVEL_INFO:
        print(message)
    else:
        print(f"[{level}] {message}", file=sys.stderr)


def _parse_defines(defines: Sequence[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for item in defines:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ValueError(f"Invalid define '{item}', expected NAME=VALUE")
        env[name] = value
    return env


def run_call(evaluator: Evaluator, name: str, raw_args: Sequence[str]) -> int:
    result = evaluator.call(name, [parse_argument(a) for a in raw_args])
    if result.error is not None:
        print(format_abort(result.error), file=sys.stderr)
        return 1
    if result.value is not None:
        print(render_literal(result.value))
    return 0


def run_repl(evaluator: Evaluator) -> int:
    print("hexpat-std REPL. Enter `function arg ...`, `:list` to show functions, blank line or EOF to quit.")
    while True:
        try:
            line = input(">>> ")
        except EOFError:
            print()
            break
        stripped = line.strip()
        if not stripped:
            break
        if stripped == ":list":
            for fname in evaluator.registry.names():
                print(fname)
            continue
        try:
            parts = shlex.split(stripped)
        except ValueError as exc:
            print(f"ParseError: {exc}", file=sys.stderr)
            continue
        run_call(evaluator, parts[0], parts[1:])
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="hexpat standard library runner")
    parser.add_argument("data", help="Data file the primitives read from")
    parser.add_argument("function", nargs="?", help="Qualified function name, e.g. std::mem::read_unsigned")
    parser.add_argument("args", nargs="*", help="Function arguments")
    parser.add_argument("--base-address", type=lambda s: int(s, 0), default=0, help="Logical address of the first data byte")
    parser.add_argument("-D", "--define", action="append", default=[], metavar="NAME=VALUE", help="Environment variable visible to std::env")
    parser.add_argument("--allow-dangerous", action="store_true", help="Permit file and network functions")
    parser.add_argument("--library", action="append", default=[], metavar="PATH", help="Load an additional function library")
    parser.add_argument("--quiet", action="store_true", help="Do not forward log messages")
    args = parser.parse_args(argv)

    try:
        env = _parse_defines(args.define)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    try:
        registry = build_default_registry(args.library)
    except LibraryError as exc:
        print(f"LibraryError: {exc}", file=sys.stderr)
        return 1

    try:
        provider = FileProvider(args.data, base_address=args.base_address)
    except OSError as exc:
        print(f"Failed to read {args.data}: {exc}", file=sys.stderr)
        return 1

    console = LogConsole(sink=_console_sink)
    console.shushed = args.quiet
    file_handles = FileHandleTable()
    context = EvaluationContext(
        provider,
        env_vars=env,
        console=console,
        file_handles=file_handles,
        allow_dangerous=args.allow_dangerous,
    )
    evaluator = Evaluator(context, registry)
    try:
        if args.function is None:
            return run_repl(evaluator)
        return run_call(evaluator, args.function, args.args)
    finally:
        file_handles.close_all()


if __name__ == "__main__":
    raise SystemExit(run_cli())
