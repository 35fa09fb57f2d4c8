"""Lazy tokenizer for pbrt scene text.

The tokenizer turns a text buffer into a stream of Tokens, one at a time.
It understands five lexical kinds:

- Identifiers: bare runs of characters (directive keywords, `true`/`false`)
- Strings: text between two double quotes, no escape processing
- Numbers: optional sign, digits, optional fraction, optional exponent
- Left and right brackets delimiting value arrays

Whitespace and `#` comments (to end of line) are skipped. Line numbers are
1-based and refer to the buffer being tokenized, so each included file gets
its own tokenizer and its own line count.

Example:
    >>> from src.pbrt.core.tokenizer import Tokenizer
    >>> [t.text for t in Tokenizer('Translate 0 -1 0 # move down')]
    ['Translate', '0', '-1', '0']
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from src.pbrt.core.errors import LexError

# Number lexeme: sign, integer and/or fraction part, optional exponent
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

# Characters that terminate a bare run
_DELIMITERS = frozenset(' \t\r\n\f\v"[]#')

_NUMBER_START = frozenset("+-.0123456789")


class TokenKind(Enum):
    """Lexical category of a token."""

    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"
    LEFT_BRACKET = "["
    RIGHT_BRACKET = "]"


@dataclass(frozen=True)
class Token:
    """A single lexical token.

    Attributes:
        kind: The lexical category.
        text: The raw lexeme. For strings this is the content between the
            quotes, without the quotes.
        line: 1-based line number where the token starts.
    """

    kind: TokenKind
    text: str
    line: int

    @property
    def is_string(self) -> bool:
        return self.kind is TokenKind.STRING

    @property
    def is_number(self) -> bool:
        return self.kind is TokenKind.NUMBER

    @property
    def is_identifier(self) -> bool:
        return self.kind is TokenKind.IDENTIFIER

    def describe(self) -> str:
        """Render the token the way it appeared in the source."""
        if self.kind is TokenKind.STRING:
            return f'"{self.text}"'
        return self.text


class Tokenizer:
    """Lazy, non-restartable iterator over the tokens of a text buffer.

    Attributes:
        source: Display name used in diagnostics (a path or "<string>").
        line: Current line number of the scan position.
    """

    def __init__(self, text: str, source: str = "<string>") -> None:
        self.source = source
        self.line = 1
        if text.startswith("\ufeff"):
            text = text[1:]
        self._text = text
        self._pos = 0
        self._length = len(text)

    def __iter__(self) -> Tokenizer:
        return self

    def __next__(self) -> Token:
        token = self._scan()
        if token is None:
            raise StopIteration
        return token

    def _error(self, message: str, line: int | None = None) -> LexError:
        return LexError(message, line=line if line is not None else self.line, source=self.source)

    def _skip_blank(self) -> None:
        text = self._text
        while self._pos < self._length:
            ch = text[self._pos]
            if ch == "\n":
                self.line += 1
                self._pos += 1
            elif ch in " \t\r\f\v":
                self._pos += 1
            elif ch == "#":
                end = text.find("\n", self._pos)
                self._pos = self._length if end < 0 else end
            else:
                return

    def _scan(self) -> Token | None:
        self._skip_blank()
        if self._pos >= self._length:
            return None

        text = self._text
        start = self._pos
        ch = text[start]
        line = self.line

        if ch == "[":
            self._pos += 1
            return Token(TokenKind.LEFT_BRACKET, ch, line)
        if ch == "]":
            self._pos += 1
            return Token(TokenKind.RIGHT_BRACKET, ch, line)

        if ch == '"':
            end = text.find('"', start + 1)
            if end < 0:
                raise self._error("unterminated string", line)
            content = text[start + 1 : end]
            self.line += content.count("\n")
            self._pos = end + 1
            return Token(TokenKind.STRING, content, line)

        if not ch.isprintable():
            raise self._error(f"unexpected character {ch!r}", line)

        end = start
        while end < self._length and text[end] not in _DELIMITERS:
            if not text[end].isprintable():
                raise self._error(f"unexpected character {text[end]!r}", line)
            end += 1
        lexeme = text[start:end]
        self._pos = end

        if ch in _NUMBER_START:
            if NUMBER_PATTERN.fullmatch(lexeme) is None:
                raise self._error(f"malformed number '{lexeme}'", line)
            return Token(TokenKind.NUMBER, lexeme, line)
        return Token(TokenKind.IDENTIFIER, lexeme, line)


def tokenize(text: str, source: str = "<string>") -> list[Token]:
    """Tokenize a whole buffer eagerly.

    Args:
        text: The scene text.
        source: Display name for diagnostics.

    Returns:
        All tokens in order.

    Raises:
        LexError: On the first lexical error.
    """
    return list(Tokenizer(text, source))
