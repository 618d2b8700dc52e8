from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from lexer import AlphaParseError, Lexer, SourceLocation, Token


logger = logging.getLogger(__name__)

TAG_MARKER = ":"
CHAR_QUOTE = "'"
BREAKPOINT_MARKER = "*"

ZERO_OPERAND_ACTIONS = frozenset("onplfz")
VALUE_ACTIONS = frozenset("ag")
JUMP_ACTIONS = frozenset("bcde")
REGISTERS = frozenset("IZS")
DIGITS = "0123456789"

# Mirrors JavaScript parseInt: leading sign and digits, rest ignored.
_LEADING_INT = re.compile(r"-?[0-9]+")

Operand = Union[int, str, None]


class BlockKind(Enum):
    COMMAND = "command"
    TAG_DEFINITION = "tag"
    TAG_REFERENCE = "tagArg"
    COMMENT = "comment"


@dataclass(frozen=True)
class Block:
    action: str
    value: Operand
    should_breakpoint: bool
    kind: BlockKind
    location: Optional[SourceLocation] = None

    @property
    def executable(self) -> bool:
        return self.kind not in (BlockKind.TAG_DEFINITION, BlockKind.COMMENT)


@dataclass(frozen=True)
class Program:
    blocks: Tuple[Block, ...]
    tags: Dict[str, int]
    filename: str = "<string>"

    def __len__(self) -> int:
        return len(self.blocks)


def build_tag_table(blocks: Iterable[Block]) -> Dict[str, int]:
    """Map each tag name to the index of its defining block.

    Duplicate names are not rejected; the last definition wins.
    """
    tags: Dict[str, int] = {}
    for block in blocks:
        if block.kind is BlockKind.TAG_DEFINITION:
            tags[block.action] = block.value  # type: ignore[assignment]
    return tags


class Parser:
    def __init__(self, tokens: List[Token], filename: str) -> None:
        self.tokens = tokens
        self.filename = filename
        self.index = 0

    def parse(self) -> Program:
        blocks: List[Block] = []
        while not self._at_end:
            blocks.append(self._parse_block(len(blocks)))
        tags = build_tag_table(blocks)
        logger.debug("Parsed %d blocks and %d tags from %s", len(blocks), len(tags), self.filename)
        return Program(blocks=tuple(blocks), tags=tags, filename=self.filename)

    def _parse_block(self, block_index: int) -> Block:
        start = self.index
        token = self._advance()
        action = token.value
        kind = BlockKind.COMMAND

        if action in JUMP_ACTIONS or action in VALUE_ACTIONS:
            if action in JUMP_ACTIONS and not self._at_end and self._peek_value() == TAG_MARKER:
                kind = BlockKind.TAG_REFERENCE
            value = self._parse_value(action)
            breakpoint_flag = self._parse_breakpoint()
            return Block(action, value, breakpoint_flag, kind, self._location(start))
        if action in ZERO_OPERAND_ACTIONS:
            breakpoint_flag = self._parse_breakpoint()
            return Block(action, None, breakpoint_flag, kind, self._location(start))
        if action == TAG_MARKER:
            name = self._read_to_delimiter(TAG_MARKER, token)
            # A tag resolves to its own position; the VM skips it and lands
            # on the instruction after it.
            return Block(name, block_index, False, BlockKind.TAG_DEFINITION, self._location(start))
        raise AlphaParseError(f"Invalid action '{action}'", location=self._token_location(token))

    def _parse_value(self, action: str) -> Operand:
        if self._at_end:
            raise AlphaParseError(
                f"Expected a value after '{action}' but reached end of input",
                location=self._token_location(self.tokens[-1]),
            )
        next_char = self._peek_value()
        if next_char in DIGITS or next_char == "-":
            return self._parse_number()
        if next_char == CHAR_QUOTE:
            return self._parse_char()
        if next_char == TAG_MARKER:
            opener = self._advance()
            return self._read_to_delimiter(TAG_MARKER, opener)
        return self._parse_register()

    def _parse_number(self) -> int:
        # Digits, minus signs and embedded 'x' literals form one run; each
        # literal contributes the decimal text of its character code.
        first = self._peek()
        pieces: List[str] = []
        while not self._at_end:
            ch = self._peek_value()
            if ch in DIGITS or ch == "-":
                pieces.append(self._advance().value)
            elif ch == CHAR_QUOTE:
                pieces.append(str(self._parse_char()))
            else:
                break
        text = "".join(pieces)
        match = _LEADING_INT.match(text)
        if match is None:
            raise AlphaParseError(f"Malformed number '{text}'", location=self._token_location(first))
        try:
            return int(match.group(0))
        except ValueError:
            # CPython caps int/str conversion length.
            raise AlphaParseError(
                f"Number too large ({len(match.group(0))} characters)",
                location=self._token_location(first),
            ) from None

    def _parse_char(self) -> int:
        opener = self._advance()
        if opener.value != CHAR_QUOTE:
            raise AlphaParseError("Character missing open quote", location=self._token_location(opener))
        if self._at_end:
            raise AlphaParseError("Character literal reached end of input", location=self._token_location(opener))
        number = ord(self._advance().value)
        if self._at_end or self._advance().value != CHAR_QUOTE:
            raise AlphaParseError("Character missing end quote", location=self._token_location(opener))
        return number

    def _parse_register(self) -> str:
        token = self._advance()
        if token.value not in REGISTERS:
            raise AlphaParseError(f"Invalid register '{token.value}'", location=self._token_location(token))
        return token.value

    def _parse_breakpoint(self) -> bool:
        if not self._at_end and self._peek_value() == BREAKPOINT_MARKER:
            self._advance()
            return True
        return False

    def _read_to_delimiter(self, delimiter: str, opener: Token) -> str:
        chars: List[str] = []
        while not self._at_end:
            token = self._advance()
            if token.value == delimiter:
                return "".join(chars)
            chars.append(token.value)
        raise AlphaParseError(f"Closer '{delimiter}' not found", location=self._token_location(opener))

    @property
    def _at_end(self) -> bool:
        return self.index >= len(self.tokens)

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _peek_value(self) -> str:
        return self.tokens[self.index].value

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _token_location(self, token: Token) -> SourceLocation:
        return SourceLocation(file=self.filename, line=token.line, column=token.column, statement=token.value)

    def _location(self, start: int) -> SourceLocation:
        first = self.tokens[start]
        text = "".join(token.value for token in self.tokens[start:self.index])
        return SourceLocation(file=self.filename, line=first.line, column=first.column, statement=text)


def parse_source(text: str, filename: str = "<string>") -> Program:
    tokens = Lexer(text, filename).tokenize()
    return Parser(tokens, filename).parse()
