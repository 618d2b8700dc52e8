"""Alpha entry point, REPL and breakpoint debugger wiring."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Callable, List, Optional

from hooks import Hooks, console_hooks, format_number
from interpreter import AlphaRuntimeError, Interpreter, TracebackFormatter
from lexer import AlphaError, AlphaParseError
from parser import Program, parse_source


PROMPT_COLOR = "\x1b[38;2;153;221;255m"
RESET_COLOR = "\033[0m"


class BreakpointLatch:
    """Breakpoint sink that only records the hit; the debugger loop reacts."""

    def __init__(self) -> None:
        self.hit = False

    def __call__(self) -> None:
        self.hit = True


def run_debugger(
    interpreter: Interpreter,
    latch: BreakpointLatch,
    *,
    prompt: Optional[Callable[[str], str]] = None,
) -> Optional[AlphaRuntimeError]:
    ask = prompt or input
    stepping = False
    while interpreter.step():
        if not (latch.hit or stepping):
            continue
        latch.hit = False
        stack = ", ".join(format_number(item) for item in interpreter.stack)
        print(
            f"\n[break] pc={interpreter.pc} accumulator={format_number(interpreter.accumulator)} stack=[{stack}]",
            file=sys.stderr,
        )
        while True:
            try:
                command = ask("(c)ontinue, (s)tep, (q)uit> ").strip().lower()
            except EOFError:
                command = "q"
            if command in ("", "c"):
                stepping = False
                break
            if command == "s":
                stepping = True
                break
            if command == "q":
                return None
            print(f"Unknown debugger command '{command}'", file=sys.stderr)
    return interpreter.error


def _run_in_repl(interpreter: Interpreter, program: Program) -> None:
    # Accumulator and stack carry over between REPL inputs.
    interpreter.load(program, keep_state=True)
    try:
        interpreter.run(keep_state=True)
    except EOFError:
        print("\nRuntimeError: input exhausted", file=sys.stderr)


def run_repl(verbose: bool) -> int:
    print(f"{PROMPT_COLOR}Alpha{RESET_COLOR} REPL. Enter instructions, blank line to run buffer.")
    had_output = False

    def _output_sink(value: object) -> None:
        nonlocal had_output
        had_output = True
        print(value if isinstance(value, str) else format_number(value), end="", flush=True)

    hooks = Hooks(input_provider=(lambda: input("? ")), output_sink=_output_sink)
    interpreter = Interpreter(hooks=hooks, verbose=verbose)
    formatter = TracebackFormatter(interpreter)
    hooks.error_sink = lambda error: print(formatter.format_text(error, verbose=verbose), file=sys.stderr)
    buffer: List[str] = []

    while True:
        prompt = f"{PROMPT_COLOR}>>>{RESET_COLOR} " if not buffer else f"{PROMPT_COLOR}..>{RESET_COLOR} "
        if had_output:
            # Ensure prompt starts on a fresh line if the program printed anything
            print()
            had_output = False
        try:
            line = input(prompt)
        except EOFError:
            print()
            break

        stripped = line.strip()

        if not buffer and stripped != "":
            try:
                program = parse_source(line, "<repl>")
            except AlphaParseError:
                # An unterminated tag or comment may continue on the next line
                buffer.append(line)
                continue
            _run_in_repl(interpreter, program)
            continue

        if stripped == "" and buffer:
            source_text = "\n".join(buffer)
            buffer.clear()
            try:
                program = parse_source(source_text, "<repl>")
            except AlphaParseError as error:
                print(f"ParseError: {error}", file=sys.stderr)
                continue
            _run_in_repl(interpreter, program)
            continue

        if buffer:
            buffer.append(line)

    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Alpha reference interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit machine snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--debug", action="store_true", help="Pause at breakpoints and allow single-stepping")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic logging level",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    try:
        program = parse_source(source_text, filename)
    except AlphaParseError as error:
        print(f"ParseError: {error}", file=sys.stderr)
        return 1

    latch = BreakpointLatch()
    hooks = console_hooks(breakpoint_sink=latch if args.debug else None)
    interpreter = Interpreter(program, hooks=hooks, verbose=args.verbose)
    formatter = TracebackFormatter(interpreter)

    def _report(error: AlphaError) -> None:
        if not isinstance(error, AlphaRuntimeError):
            print(f"{error.kind}: {error}", file=sys.stderr)
            return
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)

    hooks.error_sink = _report
    try:
        error = run_debugger(interpreter, latch) if args.debug else interpreter.run()
    except EOFError:
        print("RuntimeError: input exhausted", file=sys.stderr)
        return 1
    return 0 if error is None else 1


if __name__ == "__main__":
    raise SystemExit(run_cli())
