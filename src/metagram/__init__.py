"""Grammar-driven parsing interpreter with an embedded action language."""

from __future__ import annotations

from typing import TYPE_CHECKING

from metagram.errors import (
    ActionEvalError,
    EngineError,
    GrammarError,
    GrammarSemanticError,
    GrammarSyntaxError,
    MetagramError,
    NoMatch,
)

if TYPE_CHECKING:
    from metagram.ast import Grammar
    from metagram.config import EngineOptions
    from metagram.engine import Match
    from metagram.values import Value

__version__ = "0.1.0"

__all__ = [
    "ActionEvalError",
    "EngineError",
    "GrammarError",
    "GrammarSemanticError",
    "GrammarSyntaxError",
    "MetagramError",
    "NoMatch",
    "compile",
    "match",
    "run",
]


def compile(source: str, filename: str = "grammar.meta") -> Grammar:
    """Compile grammar source text into an immutable Grammar."""
    from metagram.compiler import compile_grammar

    return compile_grammar(source, filename)


def run(
    grammar: Grammar,
    text: str,
    start: str | None = None,
    options: EngineOptions | None = None,
    filename: str = "input",
) -> Value:
    """Match the whole input against the grammar and return the resulting value."""
    from metagram.engine import run as _run

    return _run(grammar, text, start=start, options=options, filename=filename)


def match(
    grammar: Grammar,
    text: str,
    start: str | None = None,
    pos: int = 0,
    options: EngineOptions | None = None,
) -> Match | None:
    """Match a prefix of the input starting at ``pos``; None when nothing matches."""
    from metagram.engine import match as _match

    return _match(grammar, text, start=start, pos=pos, options=options)
