from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from hooks import Hooks  # noqa: E402


class Recorder:
    """Collects everything an interpreter sends to its hooks."""

    def __init__(self) -> None:
        self.inputs: List[object] = []
        self.output: List[object] = []
        self.errors: List[object] = []
        self.breakpoints = 0

    def hooks(self, *, with_input: bool = True, with_output: bool = True) -> Hooks:
        return Hooks(
            input_provider=self._read if with_input else None,
            output_sink=self.output.append if with_output else None,
            error_sink=self.errors.append,
            breakpoint_sink=self._break,
        )

    def _read(self) -> object:
        return self.inputs.pop(0)

    def _break(self) -> None:
        self.breakpoints += 1


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def run_program(recorder: Recorder):
    """Parse ``source`` and run it against the shared recorder."""
    from interpreter import Interpreter
    from parser import parse_source

    def _run(source: str, *, inputs: Optional[List[object]] = None, **hook_options: bool) -> Interpreter:
        recorder.inputs = list(inputs or [])
        interpreter = Interpreter(parse_source(source), hooks=recorder.hooks(**hook_options))
        interpreter.run()
        return interpreter

    return _run
