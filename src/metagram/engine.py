"""Matching engine: backtracking recursive descent over a compiled Grammar.

Failure is an ordinary ``None`` result. Positions are plain integers, so a
failed branch is undone simply by continuing from the position saved before
it was tried.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from metagram.ast import (
    LEAF_TYPES,
    UNBOUND,
    Action,
    Choice,
    Grammar,
    Leaf,
    Literal,
    Not,
    Pattern,
    Repeat,
    RuleRef,
    Sequence,
)
from metagram.config import EngineOptions
from metagram.errors import EngineError, NoMatch, position_at
from metagram.eval import evaluate_action
from metagram.values import Record, Value

logger = logging.getLogger(__name__)

_FLOAT_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"[+-]?\d+(?![\d.])")
_WORD_RE = re.compile(r"\S+")
_WS_RE = re.compile(r"\s*")

# (capture, end) on success, None on failure
Result = tuple[Value, int] | None


@dataclass(frozen=True, slots=True)
class Match:
    """Successful match: the produced value and the offset just past it."""

    value: Value
    end: int


class Matcher:
    """State of one matching invocation over one input text."""

    def __init__(self, grammar: Grammar, text: str, options: EngineOptions) -> None:
        self._grammar = grammar
        self._text = text
        self._options = options
        self._memo: dict[tuple[str, int], Result] = {}
        self._active: set[tuple[str, int]] = set()
        self._rules: list[str] = []
        self.farthest = 0
        self.expected: set[str] = set()

    def match(self, pattern: Pattern, pos: int = 0) -> Result:
        return self._match(pattern, pos, ())

    # ------------------------------------------------------------------
    # Failure bookkeeping
    # ------------------------------------------------------------------

    def _fail(self, pos: int, what: str) -> Result:
        if pos > self.farthest:
            self.farthest = pos
            self.expected = {what}
        elif pos == self.farthest:
            self.expected.add(what)
        return None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _match(self, pattern: Pattern, pos: int, env: tuple[list[Value], ...]) -> Result:
        if isinstance(pattern, Leaf):
            return self._match_leaf(pattern, pos)

        if isinstance(pattern, Literal):
            if self._text.startswith(pattern.text, pos):
                return pattern.text, pos + len(pattern.text)
            return self._fail(pos, json.dumps(pattern.text))

        if isinstance(pattern, RuleRef):
            return self._match_rule(pattern.name, pos)

        if isinstance(pattern, Repeat):
            items: list[Value] = []
            cur = pos
            while True:
                result = self._match(pattern.pattern, cur, env)
                if result is None:
                    break
                value, end = result
                if end == cur:
                    # no progress; another round would loop forever
                    break
                items.append(value)
                cur = end
            return tuple(items), cur

        if isinstance(pattern, Choice):
            for alternative in pattern.alternatives:
                result = self._match(alternative, pos, env)
                if result is not None:
                    return result
            return None

        if isinstance(pattern, Not):
            # failures inside a lookahead are not what the input should contain
            farthest, expected = self.farthest, set(self.expected)
            result = self._match(pattern.pattern, pos, env)
            self.farthest, self.expected = farthest, expected
            if result is None:
                return None, pos
            return None

        if isinstance(pattern, Sequence):
            matched = self._match_fields(pattern, pos, env)
            if matched is None:
                return None
            slots, end = matched
            return Record(dict(zip(pattern.names, slots))), end

        if isinstance(pattern, Action):
            matched = self._match_fields(pattern.sequence, pos, env)
            if matched is None:
                return None
            slots, end = matched
            value = evaluate_action(
                pattern,
                slots,
                env,
                self._grammar.source,
                self._rules[-1] if self._rules else None,
                self._grammar.filename,
            )
            return value, end

        raise EngineError(f"malformed pattern node: {type(pattern).__name__}")

    # ------------------------------------------------------------------
    # Pattern kinds
    # ------------------------------------------------------------------

    def _match_fields(
        self, sequence: Sequence, pos: int, env: tuple[list[Value], ...]
    ) -> tuple[list[Value], int] | None:
        """Match every field in order; all or nothing."""
        slots: list[Value] = [None] * len(sequence.names)
        scope = (slots, *env)
        cur = pos
        for field in sequence.fields:
            result = self._match(field.pattern, cur, scope)
            if result is None:
                return None
            value, cur = result
            if field.slot != UNBOUND:
                slots[field.slot] = value
        return slots, cur

    def _match_rule(self, name: str, pos: int) -> Result:
        rule = self._grammar.rules.get(name)
        if rule is None:
            raise EngineError(f"reference to rule '{name}' absent from the compiled grammar")

        key = (name, pos)
        if self._options.memoize and key in self._memo:
            return self._memo[key]
        if key in self._active:
            # left recursion: re-entry without progress fails
            return None
        limit = self._options.max_depth
        if limit is not None and len(self._rules) >= limit:
            raise EngineError(f"rule nesting deeper than {limit} at '{name}'")

        trace = self._options.trace
        if trace:
            logger.debug("%s> %s at %d", "  " * len(self._rules), name, pos)

        self._active.add(key)
        self._rules.append(name)
        try:
            result = self._match(rule.pattern, pos, ())
        finally:
            self._rules.pop()
            self._active.discard(key)

        if trace:
            outcome = "fail" if result is None else f"ok -> {result[1]}"
            logger.debug("%s< %s %s", "  " * len(self._rules), name, outcome)

        if self._options.memoize:
            self._memo[key] = result
        return result

    def _match_leaf(self, leaf: Leaf, pos: int) -> Result:
        text = self._text
        kind = leaf.kind

        if kind == "str":
            if pos >= len(text):
                return self._fail(pos, LEAF_TYPES[kind])
            nl = text.find("\n", pos)
            if nl == -1:
                value, end = text[pos:], len(text)
            else:
                value, end = text[pos:nl], nl + 1
            if value.endswith("\r"):
                value = value[:-1]
            return value, end

        if kind == "ws":
            m = _WS_RE.match(text, pos)
            return m.group(), m.end()

        if kind in ("f64", "i64", "word"):
            start = self._skip_blanks(pos)
            regex = {"f64": _FLOAT_RE, "i64": _INT_RE, "word": _WORD_RE}[kind]
            m = regex.match(text, start)
            if m is None:
                return self._fail(start, LEAF_TYPES[kind])
            lexeme = m.group()
            value: Value = lexeme
            if kind == "f64":
                value = float(lexeme)
            elif kind == "i64":
                value = int(lexeme)
            return value, self._end_field(m.end())

        raise EngineError(f"unknown leaf type '{kind}'")

    def _skip_blanks(self, pos: int) -> int:
        text = self._text
        while pos < len(text) and text[pos] in " \t":
            pos += 1
        return pos

    def _end_field(self, pos: int) -> int:
        """Consume trailing blanks and the line terminator when the line ends here."""
        pos = self._skip_blanks(pos)
        if self._text.startswith("\r\n", pos):
            return pos + 2
        if self._text.startswith("\n", pos):
            return pos + 1
        return pos


def _start_pattern(grammar: Grammar, start: str | None) -> Pattern:
    if start is None:
        return grammar.start
    rule = grammar.rules.get(start)
    if rule is None:
        raise ValueError(f"grammar has no rule named '{start}'")
    return RuleRef(start, None, rule.span)


def _describe(pattern: Pattern) -> str:
    if isinstance(pattern, RuleRef):
        return f"rule '{pattern.name}'"
    return "start expression"


def match(
    grammar: Grammar,
    text: str,
    start: str | None = None,
    pos: int = 0,
    options: EngineOptions | None = None,
) -> Match | None:
    """Match the start rule (or ``start``) at ``pos``. Returns None when nothing matches."""
    pattern = _start_pattern(grammar, start)
    matcher = Matcher(grammar, text, options or EngineOptions())
    try:
        result = matcher.match(pattern, pos)
    except RecursionError:
        raise EngineError("matching exceeded the interpreter recursion limit") from None
    if result is None:
        return None
    return Match(result[0], result[1])


def run(
    grammar: Grammar,
    text: str,
    start: str | None = None,
    options: EngineOptions | None = None,
    filename: str = "input",
) -> Value:
    """Match the whole input and return the start rule's value.

    Raises NoMatch when the start rule fails or, with ``require_eof``,
    when input is left over.
    """
    options = options or EngineOptions()
    pattern = _start_pattern(grammar, start)
    matcher = Matcher(grammar, text, options)
    logger.debug("run %s over %d chars of %s", _describe(pattern), len(text), filename)

    try:
        result = matcher.match(pattern, 0)
    except RecursionError:
        raise EngineError("matching exceeded the interpreter recursion limit") from None

    if result is None:
        raise NoMatch(
            f"input does not match {_describe(pattern)}",
            position_at(text, matcher.farthest),
            text,
            matcher.expected,
            filename,
        )

    value, end = result
    if options.require_eof and end < len(text):
        if matcher.farthest > end:
            pos, expected = matcher.farthest, matcher.expected
        elif matcher.farthest == end:
            pos, expected = end, matcher.expected | {"end of input"}
        else:
            pos, expected = end, {"end of input"}
        raise NoMatch("unexpected input after match", position_at(text, pos), text, expected, filename)

    logger.debug("run %s matched %d chars", _describe(pattern), end)
    return value
