from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, Optional, TextIO, Union

from lexer import AlphaError


OutputValue = Union[str, int]

InputProvider = Callable[[], Union[str, int]]
OutputSink = Callable[[OutputValue], None]
ErrorSink = Callable[[AlphaError], None]
BreakpointSink = Callable[[], None]

_CHUNK_DIGITS = 1000
_CHUNK = 10 ** _CHUNK_DIGITS


def format_number(value: int) -> str:
    """Decimal text of ``value``, including numbers past the interpreter's
    int-to-str digit limit."""
    try:
        return str(value)
    except ValueError:
        pass
    rest = abs(value)
    chunks = []
    while rest:
        rest, low = divmod(rest, _CHUNK)
        chunks.append(format(low, f"0{_CHUNK_DIGITS}d"))
    digits = "".join(reversed(chunks)).lstrip("0")
    return f"-{digits}" if value < 0 else digits


@dataclass
class Hooks:
    """Host callbacks for one interpreter.

    Every slot is optional. Missing input or output is a runtime error when a
    program needs it, a missing breakpoint sink is a no-op, and a missing error
    sink falls back to stderr.
    """

    input_provider: Optional[InputProvider] = None
    output_sink: Optional[OutputSink] = None
    error_sink: Optional[ErrorSink] = None
    breakpoint_sink: Optional[BreakpointSink] = None

    def report_error(self, error: AlphaError) -> None:
        if self.error_sink is None:
            print(f"{error.kind}: {error}", file=sys.stderr)
            return
        self.error_sink(error)

    def breakpoint(self) -> None:
        if self.breakpoint_sink is not None:
            self.breakpoint_sink()


def console_hooks(
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    breakpoint_sink: Optional[BreakpointSink] = None,
) -> Hooks:
    def _read() -> str:
        if stdin is None:
            return input()
        line = stdin.readline()
        if line == "":
            raise EOFError("input exhausted")
        return line

    def _write(value: OutputValue) -> None:
        stream = stdout or sys.stdout
        stream.write(value if isinstance(value, str) else format_number(value))
        stream.flush()

    return Hooks(input_provider=_read, output_sink=_write, breakpoint_sink=breakpoint_sink)
