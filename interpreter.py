from __future__ import annotations
import json
import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from hooks import Hooks, format_number
from lexer import AlphaError, AlphaParseError, SourceLocation
from parser import Block, BlockKind, Operand, Program, parse_source


logger = logging.getLogger(__name__)

DEFAULT_HISTORY = 1000

_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")

REGISTER_INPUT = "I"
REGISTER_ACCUMULATOR = "A"
REGISTER_NEGATED = "Z"
REGISTER_STACK = "S"


class AlphaRuntimeError(AlphaError):
    """Raised for runtime faults."""

    kind = "RuntimeError"

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        location: Optional[SourceLocation] = None,
    ) -> None:
        super().__init__(message, location=location)
        self.index = index
        self.step_index: Optional[int] = None


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    block_index: int
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    snapshot: Optional[Dict[str, Any]]


class StateLogger:
    def __init__(self, history: int = DEFAULT_HISTORY) -> None:
        self.entries: Deque[StateEntry] = deque(maxlen=history)
        self.next_state_index = 0

    def record(
        self,
        *,
        block_index: int,
        location: Optional[SourceLocation],
        snapshot: Optional[Dict[str, Any]] = None,
    ) -> StateEntry:
        step_index = self.next_state_index
        entry = StateEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            block_index=block_index,
            source_location=location,
            statement=location.statement if location else None,
            snapshot=snapshot,
        )
        self.entries.append(entry)
        self.next_state_index += 1
        return entry

    @property
    def last_entry(self) -> Optional[StateEntry]:
        return self.entries[-1] if self.entries else None

    def clear(self) -> None:
        self.entries.clear()
        self.next_state_index = 0


class Interpreter:
    """Accumulator/stack machine for parsed Alpha programs.

    ``run`` executes until the end of the program or the first runtime error.
    ``step`` executes a single block so a host can pace execution itself.
    Both report failures through ``hooks.report_error`` instead of raising.
    """

    def __init__(
        self,
        program: Optional[Program] = None,
        *,
        hooks: Optional[Hooks] = None,
        verbose: bool = False,
        history: int = DEFAULT_HISTORY,
    ) -> None:
        self.hooks = hooks or Hooks()
        self.verbose = verbose
        self.logger = StateLogger(history=history)
        self.program = program if program is not None else Program(blocks=(), tags={})
        self.accumulator = 0
        self.stack: List[int] = []
        self.pc = 0
        self.error: Optional[AlphaRuntimeError] = None
        self._actions: Dict[str, Callable[[Block], None]] = {
            "a": self._accumulate,
            "g": self._assign,
            "b": self._jump_if_positive,
            "c": self._jump_if_zero,
            "d": self._jump_if_negative,
            "e": self._jump,
            "o": self._output_char,
            "n": self._output_number,
            "p": self._push,
            "l": self._pop,
            "f": self._flush,
            "z": self._nop,
        }

    @property
    def at_end(self) -> bool:
        return self.pc >= len(self.program)

    @property
    def halted(self) -> bool:
        return self.error is not None

    def load(self, program: Program, *, keep_state: bool = False) -> None:
        self.program = program
        if keep_state:
            self.pc = 0
            self.error = None
        else:
            self.reset()

    def reset(self) -> None:
        self.accumulator = 0
        self.stack = []
        self.pc = 0
        self.error = None
        self.logger.clear()

    def snapshot(self) -> Dict[str, Any]:
        return {"accumulator": self.accumulator, "stack": list(self.stack), "pc": self.pc}

    def run(self, *, keep_state: bool = False) -> Optional[AlphaRuntimeError]:
        if keep_state:
            self.pc = 0
            self.error = None
        else:
            self.reset()
        logger.debug("Running %d blocks from %s", len(self.program), self.program.filename)
        while self.step():
            pass
        return self.error

    def step(self) -> bool:
        """Execute one block and advance; False when nothing ran or it failed."""
        if self.halted or self.at_end:
            return False
        block = self.program.blocks[self.pc]
        if block.executable:
            try:
                self._execute_block(block)
            except AlphaRuntimeError as error:
                self._fail(error, block)
                return False
        self.pc += 1
        return True

    def _execute_block(self, block: Block) -> None:
        self._log_step(block)
        action = self._actions.get(block.action)
        if action is None:
            raise AlphaRuntimeError(f"Invalid command '{block.action}'")
        action(block)
        if block.should_breakpoint:
            self.hooks.breakpoint()

    def _fail(self, error: AlphaRuntimeError, block: Block) -> None:
        if error.index is None:
            error.index = self.pc
        if error.location is None:
            error.location = block.location
        last = self.logger.last_entry
        if last is not None:
            error.step_index = last.step_index
        self.error = error
        logger.debug("Halted at block %d: %s", self.pc, error.message)
        self.hooks.report_error(error)

    def _log_step(self, block: Block) -> None:
        self.logger.record(
            block_index=self.pc,
            location=block.location,
            snapshot=self.snapshot() if self.verbose else None,
        )

    # ---- operands ----

    def _resolve(self, block: Block) -> Operand:
        if block.kind is BlockKind.TAG_REFERENCE:
            try:
                return self.program.tags[block.value]  # type: ignore[index]
            except KeyError:
                raise AlphaRuntimeError(f"Undefined tag '{block.value}'") from None
        value = block.value
        if value == REGISTER_INPUT:
            return self._read_input()
        if value == REGISTER_ACCUMULATOR:
            return self.accumulator
        if value == REGISTER_NEGATED:
            return -self.accumulator
        if value == REGISTER_STACK:
            return self._pop_stack()
        return value

    def _resolve_int(self, block: Block) -> int:
        value = self._resolve(block)
        if isinstance(value, bool) or not isinstance(value, int):
            raise AlphaRuntimeError(f"Improper value: {value}")
        return value

    def _read_input(self) -> int:
        provider = self.hooks.input_provider
        if provider is None:
            raise AlphaRuntimeError("Input not connected")
        raw = provider()
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw
        text = str(raw).strip()
        try:
            return int(text)
        except ValueError:
            if _INTEGER_TEXT.fullmatch(text):
                raise AlphaRuntimeError(f"Input has too many digits to convert ({len(text)} characters)") from None
            raise AlphaRuntimeError(f"Input '{raw}' is not an integer") from None

    def _pop_stack(self) -> int:
        if self.stack:
            return self.stack.pop()
        return 0

    def _set_counter(self, target: int) -> None:
        if target > len(self.program) - 1 or target < -1:
            raise AlphaRuntimeError(f"Invalid jump target: {format_number(target)}")
        logger.debug("Jump from block %d to %d", self.pc, target)
        # The post-step increment lands on the target; -1 restarts at block 0.
        self.pc = max(target, 0) - 1

    # ---- actions ----

    def _accumulate(self, block: Block) -> None:
        self.accumulator += self._resolve_int(block)

    def _assign(self, block: Block) -> None:
        self.accumulator = self._resolve_int(block)

    def _jump_if_positive(self, block: Block) -> None:
        if self.accumulator > 0:
            self._set_counter(self._resolve_int(block))

    def _jump_if_zero(self, block: Block) -> None:
        if self.accumulator == 0:
            self._set_counter(self._resolve_int(block))

    def _jump_if_negative(self, block: Block) -> None:
        if self.accumulator < 0:
            self._set_counter(self._resolve_int(block))

    def _jump(self, block: Block) -> None:
        self._set_counter(self._resolve_int(block))

    def _output_char(self, block: Block) -> None:
        sink = self.hooks.output_sink
        if sink is None:
            raise AlphaRuntimeError("No output connected")
        try:
            char = chr(self.accumulator)
        except (ValueError, OverflowError):
            raise AlphaRuntimeError(f"Cannot output {format_number(self.accumulator)} as a character") from None
        sink(char)

    def _output_number(self, block: Block) -> None:
        sink = self.hooks.output_sink
        if sink is None:
            raise AlphaRuntimeError("No output connected")
        sink(self.accumulator)

    def _push(self, block: Block) -> None:
        self.stack.append(self.accumulator)

    def _pop(self, block: Block) -> None:
        self.accumulator = self._pop_stack()

    def _flush(self, block: Block) -> None:
        self.stack = []

    def _nop(self, block: Block) -> None:
        pass


def run_source(
    text: str,
    *,
    hooks: Optional[Hooks] = None,
    filename: str = "<string>",
    verbose: bool = False,
) -> Optional[AlphaError]:
    """Parse and run ``text``; return the reported error, if any."""
    hooks = hooks or Hooks()
    try:
        program = parse_source(text, filename)
    except AlphaParseError as error:
        hooks.report_error(error)
        return error
    return Interpreter(program, hooks=hooks, verbose=verbose).run()


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(_format_value(item) for item in value) + "]"
    if isinstance(value, int) and not isinstance(value, bool):
        return format_number(value)
    return str(value)


def _json_value(value: Any) -> Any:
    # json.dumps cannot write ints past the digit limit; those become strings.
    if isinstance(value, list):
        return [_json_value(item) for item in value]
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            str(value)
        except ValueError:
            return format_number(value)
    return value


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter, *, depth: int = 5) -> None:
        self.interpreter = interpreter
        self.depth = depth

    def recent_entries(self) -> List[StateEntry]:
        entries = list(self.interpreter.logger.entries)
        return entries[-self.depth:] if self.depth > 0 else entries

    def format_text(self, error: AlphaRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent step last):"]
        for entry in self.recent_entries():
            if entry.source_location:
                loc = entry.source_location
                lines.append(f"  File \"{loc.file}\", line {loc.line}, column {loc.column}, in block {entry.block_index}")
                if entry.statement:
                    lines.append(f"    {entry.statement}")
            else:
                lines.append(f"  <unknown location> in block {entry.block_index}")
            lines.append(f"    State log index: {entry.step_index}  State id: {entry.state_id}")
            if verbose and entry.snapshot is not None:
                snapshot = ", ".join(f"{k}={_format_value(v)}" for k, v in entry.snapshot.items())
                lines.append(f"    Machine snapshot: {snapshot}")
        lines.append(f"{error.__class__.__name__}: {error.message}")
        return "\n".join(lines)

    def to_json(self, error: AlphaRuntimeError) -> str:
        steps_json: List[Dict[str, Any]] = []
        for entry in self.recent_entries():
            item: Dict[str, Any] = {
                "step_index": entry.step_index,
                "state_id": entry.state_id,
                "block_index": entry.block_index,
            }
            if entry.source_location:
                item["source_location"] = {
                    "file": entry.source_location.file,
                    "line": entry.source_location.line,
                    "column": entry.source_location.column,
                    "statement": entry.source_location.statement,
                }
            if entry.snapshot is not None:
                item["snapshot"] = {k: _json_value(v) for k, v in entry.snapshot.items()}
            steps_json.append(item)
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "block_index": error.index,
                "failing_step_index": error.step_index,
            },
            "traceback": steps_json,
        }
        return json.dumps(data, indent=2)
