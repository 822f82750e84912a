"""Token types, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    # Grouping
    LBRACE = auto()  # {
    RBRACE = auto()  # }
    LBRACKET = auto()  # [
    RBRACKET = auto()  # ]
    LPAREN = auto()  # (
    RPAREN = auto()  # )

    # Punctuation
    COMMA = auto()  # ,
    SEMI = auto()  # ;
    COLON = auto()  # :
    DOT = auto()  # .
    DOTDOT = auto()  # ..
    PIPE = auto()  # |
    BANG = auto()  # !

    # Grammar operators
    DEFINE = auto()  # :=
    BIND = auto()  # <-
    ARROW = auto()  # =>
    SEPARATOR = auto()  # --- (three or more dashes)

    # Action operators
    ASSIGN = auto()  # =
    PLUS_ASSIGN = auto()  # +=
    PLUS = auto()  # +
    MINUS = auto()  # -
    STAR = auto()  # *
    SLASH = auto()  # /
    EQ = auto()  # ==
    NE = auto()  # !=
    LT = auto()  # <
    LE = auto()  # <=
    GT = auto()  # >
    GE = auto()  # >=

    # Content
    IDENTIFIER = auto()
    KEYWORD = auto()
    NUMBER = auto()  # value is the raw lexeme
    STRING = auto()  # value is the resolved text

    EOF = auto()


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token with resolved value and original source text."""

    type: TokenType
    value: str
    raw: str
    span: Span


KEYWORDS = frozenset(
    {"meta", "repeat", "let", "for", "in", "if", "else", "break", "true", "false"}
)

# Longest operators first so that ":=" wins over ":".
OPERATORS: tuple[tuple[str, TokenType], ...] = (
    (":=", TokenType.DEFINE),
    ("<-", TokenType.BIND),
    ("=>", TokenType.ARROW),
    ("..", TokenType.DOTDOT),
    ("+=", TokenType.PLUS_ASSIGN),
    ("==", TokenType.EQ),
    ("!=", TokenType.NE),
    ("<=", TokenType.LE),
    (">=", TokenType.GE),
    ("{", TokenType.LBRACE),
    ("}", TokenType.RBRACE),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    (",", TokenType.COMMA),
    (";", TokenType.SEMI),
    (":", TokenType.COLON),
    (".", TokenType.DOT),
    ("|", TokenType.PIPE),
    ("!", TokenType.BANG),
    ("=", TokenType.ASSIGN),
    ("+", TokenType.PLUS),
    ("-", TokenType.MINUS),
    ("*", TokenType.STAR),
    ("/", TokenType.SLASH),
    ("<", TokenType.LT),
    (">", TokenType.GT),
)


def is_ident_start(ch: str) -> bool:
    """Return True if ch can begin an identifier."""
    return ch.isalpha() or ch == "_"


def is_ident_char(ch: str) -> bool:
    """Return True if ch is a valid identifier character."""
    return ch.isalnum() or ch == "_"


def is_hex_digit(ch: str) -> bool:
    """Return True if ch is a hexadecimal digit."""
    return ch != "" and ch in "0123456789abcdefABCDEF"
