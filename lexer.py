from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional


COMMENT_MARKER = "#"


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str = ""


class AlphaError(Exception):
    """Base class for interpreter errors."""

    kind = "Error"

    def __init__(self, message: str, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.message} at {self.location.file}:{self.location.line}:{self.location.column}"


class AlphaParseError(AlphaError):
    """Raised when parsing fails."""

    kind = "ParseError"


@dataclass
class Token:
    value: str
    line: int
    column: int


class Lexer:
    """Strips whitespace and ``#...#`` comments, keeping source positions.

    The language is line-free, so the token stream is just the remaining
    characters, each tagged with where it sat in the original text.
    """

    def __init__(self, text: str, filename: str) -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch.isspace():
                _advance()
                continue
            if ch == COMMENT_MARKER and self._comment_closes():
                self._consume_comment()
                continue
            tokens_append(Token(ch, self.line, self.column))
            _advance()
        return tokens

    def _comment_closes(self) -> bool:
        return self.text.find(COMMENT_MARKER, self.index + 1) != -1

    def _consume_comment(self) -> None:
        # Opening marker, body, closing marker.
        self._advance()
        while self._peek() != COMMENT_MARKER:
            self._advance()
        self._advance()

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
