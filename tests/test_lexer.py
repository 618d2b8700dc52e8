from __future__ import annotations

from lexer import AlphaParseError, Lexer, SourceLocation


def _chars(text: str) -> str:
    return "".join(token.value for token in Lexer(text, "<test>").tokenize())


def test_whitespace_is_removed():
    assert _chars(" g 5\n\ta3 \r\n n ") == "g5a3n"


def test_comments_between_markers_are_removed():
    assert _chars("g5 #set up# a3 #add three# n") == "g5a3n"


def test_comments_pair_left_to_right():
    # The text between the second and third markers is code, not comment.
    assert _chars("#one#g1#two#n") == "g1n"


def test_comment_may_span_lines():
    assert _chars("g1#first\nsecond#n") == "g1n"


def test_unpaired_marker_is_kept():
    assert _chars("g1#n") == "g1#n"


def test_tokens_remember_original_positions():
    tokens = Lexer("g5\n  #c#  n", "<test>").tokenize()
    assert [(t.value, t.line, t.column) for t in tokens] == [
        ("g", 1, 1),
        ("5", 1, 2),
        ("n", 2, 8),
    ]


def test_parse_error_message_includes_location():
    error = AlphaParseError("Invalid action 'x'", location=SourceLocation("prog.alpha", 3, 7))
    assert str(error) == "Invalid action 'x' at prog.alpha:3:7"
    assert error.kind == "ParseError"


def test_error_without_location_is_plain_message():
    assert str(AlphaParseError("boom")) == "boom"
