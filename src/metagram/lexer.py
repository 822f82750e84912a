"""Grammar lexer: converts meta-notation source text into a flat token stream."""

from __future__ import annotations

from metagram.errors import GrammarSyntaxError
from metagram.tokens import (
    KEYWORDS,
    OPERATORS,
    Position,
    Span,
    Token,
    TokenType,
    is_hex_digit,
    is_ident_char,
    is_ident_start,
)


class Lexer:
    """Tokenize grammar source text into a stream of Token objects.

    Whitespace and ``//`` comments are skipped; no layout tokens are emitted.
    """

    def __init__(self, source: str, filename: str = "grammar.meta") -> None:
        self._source = source
        self._filename = filename
        self._pos = 0
        self._line = 1
        self._col = 1
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list."""
        while True:
            self._skip_trivia()
            if self._pos >= len(self._source):
                break
            self._lex_token()

        start = self._current_pos()
        self._tokens.append(Token(TokenType.EOF, "", "", Span(start, start)))
        return self._tokens

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._pos)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _advance(self) -> str:
        ch = self._source[self._pos]
        self._pos += 1
        if ch == "\n":
            self._line += 1
            self._col = 1
        else:
            self._col += 1
        return ch

    def _emit(self, tt: TokenType, value: str, start: Position) -> Token:
        raw = self._source[start.offset : self._pos]
        tok = Token(tt, value, raw, Span(start, self._current_pos()))
        self._tokens.append(tok)
        return tok

    def _error(self, message: str, pos: Position | None = None) -> GrammarSyntaxError:
        if pos is None:
            pos = self._current_pos()
        return GrammarSyntaxError(message, Span(pos, pos), self._source, self._filename)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _skip_trivia(self) -> None:
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in " \t\r\n\f":
                self._advance()
            elif ch == "/" and self._peek(1) == "/":
                while self._pos < len(self._source) and self._peek() != "\n":
                    self._advance()
            else:
                break

    def _lex_token(self) -> None:
        ch = self._peek()

        if ch == "\0":
            raise self._error("NUL character in source")

        if ch == '"':
            self._lex_string()
            return

        if ch.isdigit() or (ch == "." and self._peek(1).isdigit()):
            self._lex_number()
            return

        if is_ident_start(ch):
            self._lex_word()
            return

        if ch == "-" and self._peek(1) == "-" and self._peek(2) == "-":
            start = self._current_pos()
            while self._peek() == "-":
                self._advance()
            self._emit(TokenType.SEPARATOR, self._source[start.offset : self._pos], start)
            return

        for text, tt in OPERATORS:
            if self._source.startswith(text, self._pos):
                start = self._current_pos()
                for _ in text:
                    self._advance()
                self._emit(tt, text, start)
                return

        raise self._error(f"unexpected character {ch!r}")

    def _lex_word(self) -> None:
        start = self._current_pos()
        chars = []
        while self._pos < len(self._source) and is_ident_char(self._peek()):
            chars.append(self._advance())
        text = "".join(chars)
        tt = TokenType.KEYWORD if text in KEYWORDS else TokenType.IDENTIFIER
        self._emit(tt, text, start)

    def _lex_number(self) -> None:
        start = self._current_pos()
        while self._peek().isdigit():
            self._advance()
        # "0..3" is a range, not a fraction
        if self._peek() == "." and self._peek(1) != ".":
            self._advance()
            while self._peek().isdigit():
                self._advance()
        if self._peek() in ("e", "E"):
            sign = 1 if self._peek(1) in ("+", "-") else 0
            if self._peek(1 + sign).isdigit():
                for _ in range(1 + sign):
                    self._advance()
                while self._peek().isdigit():
                    self._advance()
        if is_ident_start(self._peek()):
            raise self._error("identifier directly after number", start)
        self._emit(TokenType.NUMBER, self._source[start.offset : self._pos], start)

    # ------------------------------------------------------------------
    # String literals
    # ------------------------------------------------------------------

    def _lex_string(self) -> None:
        start = self._current_pos()
        self._advance()  # consume opening quote
        chars: list[str] = []
        while True:
            if self._pos >= len(self._source) or self._peek() == "\n":
                raise self._error("unterminated string literal", start)
            ch = self._peek()
            if ch == '"':
                self._advance()
                break
            if ch == "\\":
                chars.append(self._lex_escape())
            else:
                chars.append(self._advance())
        self._emit(TokenType.STRING, "".join(chars), start)

    def _lex_escape(self) -> str:
        start = self._current_pos()
        self._advance()  # consume backslash

        if self._pos >= len(self._source):
            raise self._error("unexpected end of input in string escape", start)

        ch = self._peek()
        simple = {"\\": "\\", '"': '"', "n": "\n", "t": "\t", "r": "\r"}
        if ch in simple:
            self._advance()
            return simple[ch]

        if ch == "x":
            self._advance()
            return self._lex_hex_escape(2, start)

        if ch == "U":
            self._advance()
            return self._lex_hex_escape(8, start)

        raise self._error(f"invalid string escape sequence '\\{ch}'", start)

    def _lex_hex_escape(self, count: int, start: Position) -> str:
        """Read `count` hex digits and return the resolved character."""
        digits = []
        for i in range(count):
            if self._pos >= len(self._source):
                raise self._error(
                    f"incomplete escape: expected {count} hex digits, got {i}", start
                )
            ch = self._peek()
            if not is_hex_digit(ch):
                raise self._error(f"invalid hex digit '{ch}' in escape sequence", start)
            digits.append(self._advance())
        hex_str = "".join(digits)
        codepoint = int(hex_str, 16)
        if codepoint > 0x10FFFF:
            raise self._error(f"Unicode codepoint U+{hex_str} is out of range", start)
        return chr(codepoint)


def tokenize(source: str, filename: str = "grammar.meta") -> list[Token]:
    """Convenience function: tokenize source text and return token list."""
    return Lexer(source, filename).tokenize()
