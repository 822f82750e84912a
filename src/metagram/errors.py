"""Error types with formatted source context."""

from __future__ import annotations

from collections.abc import Iterable

from metagram.tokens import Position, Span


def _render(message: str, span: Span, source: str, filename: str) -> str:
    lines = source.splitlines(keepends=True)
    line_idx = span.start.line - 1
    col = span.start.column

    # Build the source line (strip trailing newline for display)
    if 0 <= line_idx < len(lines):
        source_line = lines[line_idx].rstrip("\n").rstrip("\r")
    else:
        source_line = ""

    # Underline the full span when on one line, otherwise to end of line
    if span.end.line == span.start.line:
        underline_len = max(1, span.end.column - col)
    else:
        underline_len = max(1, len(source_line) - col + 1)

    pad = " " * (col - 1)
    carets = "^" * underline_len

    line_num = str(span.start.line)
    gutter_width = len(line_num) + 1

    blank_gutter = " " * gutter_width + "|"
    line_gutter = f"{line_num:>{gutter_width - 1}} |"

    return (
        f"error: {message}\n"
        f"{' ' * gutter_width}--> {filename}:{span.start.line}:{col}\n"
        f"{blank_gutter}\n"
        f"{line_gutter} {source_line}\n"
        f"{blank_gutter} {pad}{carets}"
    )


def position_at(text: str, offset: int) -> Position:
    """Convert a 0-based offset in text to a 1-based line/column Position."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return Position(line, offset - line_start + 1, offset)


class MetagramError(Exception):
    """Base class for every error raised by the engine."""


class GrammarError(MetagramError):
    """Raised when grammar source cannot be compiled."""

    def __init__(
        self, message: str, span: Span, source: str, filename: str = "grammar.meta"
    ) -> None:
        self.message = message
        self.span = span
        self.source = source
        self.filename = filename
        super().__init__(self.format())

    @property
    def line(self) -> int:
        return self.span.start.line

    @property
    def column(self) -> int:
        return self.span.start.column

    def format(self, filename: str | None = None) -> str:
        return _render(self.message, self.span, self.source, filename or self.filename)


class GrammarSyntaxError(GrammarError):
    """Malformed grammar source: bad token, bad rule shape, unexpected end."""


class GrammarSemanticError(GrammarError):
    """Well-formed grammar that breaks a rule of meaning.

    Duplicate or undefined rules, unbound labels, missing or repeated start
    designation.
    """


class ActionEvalError(MetagramError):
    """Raised when an action body fails while it is being evaluated."""

    def __init__(
        self,
        message: str,
        span: Span,
        source: str,
        rule: str | None = None,
        filename: str = "grammar.meta",
    ) -> None:
        self.message = message
        self.span = span
        self.source = source
        self.rule = rule
        self.filename = filename
        super().__init__(self.format())

    def format(self, filename: str | None = None) -> str:
        result = _render(self.message, self.span, self.source, filename or self.filename)
        if self.rule is not None:
            result += f"\n  in action of rule: {self.rule}"
        return result


class NoMatch(MetagramError):
    """The start rule did not match the input.

    Not a fault of the grammar or the engine: the position is the farthest
    point the matcher reached before every alternative failed.
    """

    def __init__(
        self,
        message: str,
        position: Position,
        text: str,
        expected: Iterable[str] = (),
        filename: str = "input",
    ) -> None:
        self.message = message
        self.position = position
        self.text = text
        self.expected = tuple(sorted(set(expected)))
        self.filename = filename
        super().__init__(self.format())

    def format(self, filename: str | None = None) -> str:
        message = self.message
        if self.expected:
            message += f" (expected {', '.join(self.expected)})"
        span = Span(self.position, self.position)
        return _render(message, span, self.text, filename or self.filename)


class EngineError(MetagramError):
    """Internal invariant violation inside the engine; aborts the current run."""
