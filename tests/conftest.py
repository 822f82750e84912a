"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from metagram import compile
from metagram.ast import Grammar
from metagram.lexer import tokenize
from metagram.tokens import Token, TokenType

PERSON_GRAMMAR = """\
meta {
    line := [text: str] => text;

    photo := [lines <- repeat line] => {
        let s = "";
        for i in 0..len(lines) {
            s += clone(lines[i]) + "\\n";
        }
        s
    };

    person := [first_name: str, last_name: str, age: f64, photo:"photo"] => {
        first_name: first_name,
        last_name: last_name,
        age: age,
        photo: photo
    };

    doc := repeat person;
    ------------------------------
    doc
}
"""


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(source)
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


@pytest.fixture
def grammar():
    """Return a helper that wraps rules in a meta block and compiles them."""

    def _grammar(rules: str, start: str = "main") -> Grammar:
        return compile(wrap(rules, start))

    return _grammar


@pytest.fixture
def person_grammar() -> Grammar:
    return compile(PERSON_GRAMMAR)


def wrap(rules: str, start: str = "main") -> str:
    """Build grammar source from rule text and a start expression."""
    return f"meta {{\n{rules}\n---\n{start}\n}}\n"


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_values(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token values match the expected list."""
    actual = [t.value for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"
