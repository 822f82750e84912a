"""Grammar model: patterns, rules, and the action expression tree.

Every node is a frozen dataclass. The parser builds the tree with names only;
the compiler returns a copy in which every variable reference carries the
``(depth, slot)`` it reads at evaluation time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from metagram.tokens import Span

# Leaf types recognised in field lists: name -> short description used in
# "expected ..." messages.
LEAF_TYPES: dict[str, str] = {
    "str": "line of text",
    "f64": "number",
    "i64": "integer",
    "word": "word",
    "ws": "whitespace",
}

UNBOUND = -1


# ---------------------------------------------------------------------------
# Action expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Number:
    value: int | float
    span: Span


@dataclass(frozen=True, slots=True)
class String:
    value: str
    span: Span


@dataclass(frozen=True, slots=True)
class Bool:
    value: bool
    span: Span


@dataclass(frozen=True, slots=True)
class Var:
    """Variable read; depth 0 is the action's own frame, 1+ enclosing field lists."""

    name: str
    span: Span
    depth: int = UNBOUND
    slot: int = UNBOUND


@dataclass(frozen=True, slots=True)
class ListExpr:
    items: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class RecordExpr:
    fields: tuple[tuple[str, Expr], ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Index:
    target: Expr
    index: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Attr:
    target: Expr
    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class Call:
    name: str
    args: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Unary:
    op: str
    operand: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Binary:
    op: str
    left: Expr
    right: Expr
    span: Span


@dataclass(frozen=True, slots=True)
class Block:
    """Statements followed by the expression whose value the block yields."""

    body: tuple[Stmt, ...]
    result: Expr
    span: Span


Expr = Number | String | Bool | Var | ListExpr | RecordExpr | Index | Attr | Call | Unary | Binary | Block


# ---------------------------------------------------------------------------
# Action statements
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Let:
    name: str
    value: Expr
    span: Span
    slot: int = UNBOUND


@dataclass(frozen=True, slots=True)
class Assign:
    """``name = value`` or ``name += value``."""

    name: str
    op: str
    value: Expr
    span: Span
    slot: int = UNBOUND


@dataclass(frozen=True, slots=True)
class For:
    name: str
    start: Expr
    stop: Expr
    body: tuple[Stmt, ...]
    span: Span
    slot: int = UNBOUND


@dataclass(frozen=True, slots=True)
class If:
    condition: Expr
    then: tuple[Stmt, ...]
    orelse: tuple[Stmt, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Break:
    span: Span


Stmt = Let | Assign | For | If | Break


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Leaf:
    """Typed terminal matcher (``str``, ``f64``, ...)."""

    kind: str
    span: Span


@dataclass(frozen=True, slots=True)
class Literal:
    text: str
    span: Span


@dataclass(frozen=True, slots=True)
class RuleRef:
    name: str
    override: str | None
    span: Span


@dataclass(frozen=True, slots=True)
class Repeat:
    pattern: Pattern
    span: Span


@dataclass(frozen=True, slots=True)
class Not:
    pattern: Pattern
    span: Span


@dataclass(frozen=True, slots=True)
class Choice:
    alternatives: tuple[Pattern, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Field:
    """One entry of a field list.

    ``key`` is the name the capture is stored under (None when unbound);
    ``alias`` is an extra name visible to actions, set for
    ``label <- rule:"override"``.
    """

    pattern: Pattern
    key: str | None
    alias: str | None
    slot: int
    span: Span


@dataclass(frozen=True, slots=True)
class Sequence:
    fields: tuple[Field, ...]
    names: tuple[str, ...]  # storage key per slot
    span: Span


@dataclass(frozen=True, slots=True)
class Action:
    sequence: Sequence
    body: Expr
    span: Span
    frame_size: int = 0


Pattern = Leaf | Literal | RuleRef | Repeat | Not | Choice | Sequence | Action


# ---------------------------------------------------------------------------
# Rules and grammars
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    pattern: Pattern
    span: Span


@dataclass(frozen=True, slots=True)
class StartDecl:
    """The pattern following a separator line."""

    pattern: Pattern
    span: Span


@dataclass(frozen=True, slots=True)
class GrammarSource:
    """Parser output: rules and start declarations exactly as written."""

    rules: tuple[Rule, ...]
    starts: tuple[StartDecl, ...]
    span: Span


@dataclass(frozen=True, slots=True)
class Grammar:
    """Compiled, validated grammar. Immutable and safe to share between threads."""

    rules: Mapping[str, Rule]
    start: Pattern
    source: str
    filename: str

    @property
    def start_rule(self) -> str | None:
        """Name of the start rule when the start expression is a bare reference."""
        if isinstance(self.start, RuleRef):
            return self.start.name
        return None
