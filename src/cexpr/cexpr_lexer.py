"""
Lexical analyzer for cexpr expressions.

This module turns expression text into a stream of typed tokens:

Classes:
    CharacterStream: Character reader with line/column tracking.
    Token: A single token (type, raw text, decoded number, location).
    Lexer: Produces tokens from a CharacterStream, collecting lex diagnostics.

Token types:
    - NUMBER: decimal (``12``, ``1.5``, ``.5``, ``2e-3``), binary (``0b101``),
      octal (``0o17``) or hexadecimal (``0xFF``) literal
    - VARIABLE: identifier not followed by ``(``
    - FUNCTION: identifier followed (after optional blanks) by ``(``
    - STRING: ``"``-delimited text, only meaningful inside ``print()``
    - DELIMITER: operator or punctuation (``+``, ``<=``, ``&&``, ``(``, ``,`` ...)
    - UNKNOWN: a run of characters that starts no valid token
    - END: returned for every call once the input is exhausted

Malformed numbers and unterminated strings are reported as diagnostics
but still consumed whole, so lexing always continues to the end.

Example:
    >>> lexer = Lexer(CharacterStream("sin(x) + 2"))
    >>> [tok.type for tok in lexer.tokenize()]
    ['FUNCTION', 'DELIMITER', 'VARIABLE', 'DELIMITER', 'DELIMITER', 'NUMBER', 'END']
"""

import math
import re
from typing import Any

from cexpr.cexpr_constants import DELIMITERS, TWO_CHAR_OPERATORS
from cexpr.cexpr_diagnostics import (
    INVALID_NUMBER,
    LEX_ERROR,
    UNBALANCED_QUOTES,
    Diagnostic,
)

_DECIMAL = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_PREFIXED = {
    "b": (re.compile(r"[01]+"), 2),
    "o": (re.compile(r"[0-7]+"), 8),
    "x": (re.compile(r"[0-9a-fA-F]+"), 16),
}


class CharacterStream:
    """Reads characters from a source string, tracking line and column.

    Attributes:
        source (str): The input text.
        position (int): Index of the next character.
        line (int): Current line number (1-indexed).
        column (int): Current column number (1-indexed).
    """

    def __init__(self, source: str, position: int = 0, line: int = 1, column: int = 1):
        self.source = source
        self.position = position
        self.line = line
        self.column = column

    def next(self) -> str:
        """Consumes and returns the next character.

        Raises:
            IndexError: If the stream is already exhausted.
        """
        if self.position >= len(self.source):
            raise IndexError(
                f"CharacterStream: read past end of source at position {self.position}"
            )
        char = self.source[self.position]
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1
        return char

    def peek(self, offset: int = 0) -> str:
        """
        Returns the character at the given offset from the current position without advancing.

        Args:
            offset (int, optional): Number of characters to look ahead. Defaults to 0.

        Returns:
            str: The character at the offset, or an empty string if out of bounds.
        """
        index = self.position + offset
        if index < 0 or index >= len(self.source):
            return ""
        return self.source[index]

    def end_of_file(self) -> bool:
        """Returns True once the stream is exhausted or at an embedded NUL.

        Returns:
            bool: Whether no more characters can be read.
        """
        # an embedded NUL ends the expression like it does a C string
        return self.position >= len(self.source) or self.source[self.position] == "\0"


class Token:
    """A lexical token.

    Attributes:
        type (str): One of NUMBER, VARIABLE, FUNCTION, STRING, DELIMITER, UNKNOWN, END.
        value (str): The raw text (without quotes for STRING).
        number (float | None): Decoded value for a well-formed NUMBER, else None.
        position (int): 0-based offset of the token in the expression.
        line (int): 1-based line of the token.
        col (int): 1-based column of the token.
    """

    def __init__(
        self,
        type_: str,
        value: str,
        number: float | None = None,
        position: int = 0,
        line: int = 1,
        col: int = 1,
    ):
        self.type = type_
        self.value = value
        self.number = number
        self.position = position
        self.line = line
        self.col = col

    def is_delimiter(self, *values: str) -> bool:
        """Checks for a DELIMITER token with one of the given texts.

        Args:
            *values (str): Accepted operator or punctuation texts.

        Returns:
            bool: True if this token is a delimiter whose text is in ``values``.
        """
        return self.type == "DELIMITER" and self.value in values

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, Token)
            and self.type == other.type
            and self.value == other.value
            and self.position == other.position
        )

    def __hash__(self) -> int:
        return hash((self.type, self.value, self.position))


def decode_number(text: str) -> float | None:
    """Decodes a numeric literal.

    Args:
        text (str): Raw literal text, e.g. ``"1.5e3"`` or ``"0xFF"``.

    Returns:
        float | None: The value, or None if the literal is malformed. Literals
        beyond the double range saturate to ``inf``.
    """
    if len(text) > 1 and text[0] == "0" and text[1].lower() in _PREFIXED:
        pattern, base = _PREFIXED[text[1].lower()]
        digits = text[2:]
        if not pattern.fullmatch(digits):
            return None
        try:
            return float(int(digits, base))
        except OverflowError:
            return math.inf
    if not _DECIMAL.fullmatch(text):
        return None
    return float(text)


class Lexer:
    """Converts a CharacterStream into tokens.

    Attributes:
        stream (CharacterStream): The source being tokenized.
        diagnostics (list[Diagnostic]): Lex errors found so far.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream
        self.diagnostics: list[Diagnostic] = []

    def peek(self) -> str:
        """Returns the next character in the stream without consuming it.

        Returns:
            str: The upcoming character, or an empty string at end of input.
        """
        return self.stream.peek()

    def advance(self) -> str:
        """Consumes and returns the next character from the stream.

        Returns:
            str: The next character.
        """
        return self.stream.next()

    def skip_whitespace(self) -> None:
        """Skips blanks, tabs, carriage returns and newlines."""
        while not self.stream.end_of_file() and self.peek().isspace():
            self.advance()

    def _report(self, kind: str, message: str, position: int) -> None:
        self.diagnostics.append(Diagnostic(LEX_ERROR, kind, message, position=position))

    def _read_run(self, allow_exponent_sign: bool = False) -> str:
        """Consumes characters up to the next delimiter.

        Args:
            allow_exponent_sign (bool): Keep a ``+``/``-`` that directly follows
                an ``e``/``E``, as in ``1e-5``.

        Returns:
            str: The consumed text (possibly empty).
        """
        text = ""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch in DELIMITERS:
                exponent_sign = (
                    allow_exponent_sign and ch in "+-" and text[-1:] in ("e", "E")
                )
                if not exponent_sign:
                    break
            text += self.advance()
        return text

    def next_token(self) -> Token:
        """Consumes and returns the next token.

        Malformed numbers and unterminated strings are appended to
        ``diagnostics``; the token is still returned.

        Returns:
            Token: The next token, or an END token once the input is exhausted.
        """
        self.skip_whitespace()

        position = self.stream.position
        line, col = self.stream.line, self.stream.column
        if self.stream.end_of_file():
            return Token("END", "", position=position, line=line, col=col)

        ch = self.peek()

        # 1. String literal
        if ch == '"':
            self.advance()
            text = ""
            while not self.stream.end_of_file() and self.peek() != '"':
                text += self.advance()
            if self.stream.end_of_file():
                self._report(UNBALANCED_QUOTES, "Unbalanced quotes", position)
            else:
                self.advance()
            return Token("STRING", text, position=position, line=line, col=col)

        # 2. Operator or punctuation
        if ch in DELIMITERS:
            op = self.advance()
            if op + self.peek() in TWO_CHAR_OPERATORS:
                op += self.advance()
            return Token("DELIMITER", op, position=position, line=line, col=col)

        # 3. Number
        if ch.isdigit() or (ch == "." and self.stream.peek(1).isdigit()):
            hex_like = ch == "0" and self.stream.peek(1).lower() in _PREFIXED
            text = self._read_run(allow_exponent_sign=not hex_like)
            number = decode_number(text)
            if number is None:
                self._report(INVALID_NUMBER, f"Invalid number: {text}", position)
            return Token("NUMBER", text, number, position=position, line=line, col=col)

        # 4. Variable or function name
        if ch.isalpha():
            name = self._read_run()
            self.skip_whitespace()
            kind = "FUNCTION" if self.peek() == "(" else "VARIABLE"
            return Token(kind, name, position=position, line=line, col=col)

        # 5. Anything else is reported by the parser when it reaches it
        text = self._read_run() or self.advance()
        return Token("UNKNOWN", text, position=position, line=line, col=col)

    def tokenize(self) -> list[Token]:
        """Reads the whole stream.

        Returns:
            list[Token]: Every token in order, ending with exactly one END token.
        """
        tokens: list[Token] = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.type == "END":
                return tokens


__all__ = ["CharacterStream", "Lexer", "Token", "decode_number"]
