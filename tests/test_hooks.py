from __future__ import annotations

import io

import pytest

from hooks import Hooks, console_hooks, format_number
from interpreter import AlphaRuntimeError
from lexer import AlphaParseError


def test_report_error_uses_sink():
    seen = []
    error = AlphaRuntimeError("boom")
    Hooks(error_sink=seen.append).report_error(error)
    assert seen == [error]


def test_report_error_falls_back_to_stderr(capsys):
    Hooks().report_error(AlphaParseError("Invalid action 'x'"))
    assert capsys.readouterr().err == "ParseError: Invalid action 'x'\n"


def test_breakpoint_without_sink_is_silent():
    Hooks().breakpoint()


def test_hooks_are_not_shared_between_instances():
    first = Hooks()
    first.output_sink = print
    assert Hooks().output_sink is None


def test_console_hooks_read_and_write():
    stdin = io.StringIO("12\n-3\n")
    stdout = io.StringIO()
    hooks = console_hooks(stdin=stdin, stdout=stdout)
    assert hooks.input_provider() == "12\n"
    assert hooks.input_provider() == "-3\n"
    hooks.output_sink("A")
    hooks.output_sink(42)
    assert stdout.getvalue() == "A42"


def test_console_hooks_signal_exhausted_input():
    hooks = console_hooks(stdin=io.StringIO(""))
    with pytest.raises(EOFError):
        hooks.input_provider()


def test_console_hooks_pass_breakpoint_sink():
    hits = []
    hooks = console_hooks(breakpoint_sink=lambda: hits.append(1))
    hooks.breakpoint()
    assert hits == [1]


def test_console_hooks_write_numbers_of_any_length():
    stdout = io.StringIO()
    console_hooks(stdout=stdout).output_sink(10 ** 5000)
    assert stdout.getvalue() == "1" + "0" * 5000


@pytest.mark.parametrize(
    "value, text",
    [
        (0, "0"),
        (-42, "-42"),
        (10 ** 5000, "1" + "0" * 5000),
        (-(10 ** 5000) - 7, "-1" + "0" * 4999 + "7"),
        (10 ** 2000 + 10 ** 999, "1" + "0" * 1000 + "1" + "0" * 999),
    ],
    ids=["zero", "negative", "pow10_5000", "negative_huge", "mixed_huge"],
)
def test_format_number(value, text):
    assert format_number(value) == text
