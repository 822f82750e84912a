"""Semantic checks and name resolution: turns a GrammarSource into a Grammar."""

from __future__ import annotations

import logging
from dataclasses import replace
from types import MappingProxyType

from metagram.ast import (
    LEAF_TYPES,
    Action,
    Assign,
    Attr,
    Binary,
    Block,
    Bool,
    Break,
    Call,
    Choice,
    Expr,
    For,
    Grammar,
    GrammarSource,
    If,
    Index,
    Leaf,
    Let,
    ListExpr,
    Literal,
    Not,
    Number,
    Pattern,
    RecordExpr,
    Repeat,
    RuleRef,
    Sequence,
    Stmt,
    String,
    Unary,
    Var,
)
from metagram.errors import GrammarSemanticError
from metagram.parser import parse
from metagram.tokens import Span

logger = logging.getLogger(__name__)

# Kinds of names visible inside an action frame
_CAPTURE = "capture"
_LOCAL = "local"
_LOOP = "loop"


class _ActionScope:
    """Resolves the names used by one action body to frame slots.

    Slot 0..n-1 hold the field captures of the action's own field list;
    locals and loop variables get fresh slots after them. ``outer`` holds
    the names bound by enclosing field lists, innermost first.
    """

    def __init__(
        self,
        compiler: Compiler,
        captures: dict[str, int],
        first_free: int,
        outer: tuple[dict[str, int], ...],
    ) -> None:
        self._compiler = compiler
        self._blocks: list[dict[str, tuple[int, str]]] = [
            {name: (slot, _CAPTURE) for name, slot in captures.items()}
        ]
        self._outer = outer
        self.size = first_free

    def _declare(self, name: str, kind: str) -> int:
        slot = self.size
        self.size += 1
        self._blocks[-1][name] = (slot, kind)
        return slot

    def _lookup(self, name: str) -> tuple[int, int, str] | None:
        for block in reversed(self._blocks):
            if name in block:
                slot, kind = block[name]
                return 0, slot, kind
        for depth, names in enumerate(self._outer, start=1):
            if name in names:
                return depth, names[name], _CAPTURE
        return None

    def _unbound(self, name: str, span: Span) -> GrammarSemanticError:
        return self._compiler.error(
            f"'{name}' is not bound by the field list and not declared in this action", span
        )

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def stmts(self, body: tuple[Stmt, ...]) -> tuple[Stmt, ...]:
        self._blocks.append({})
        try:
            return tuple(self.stmt(s) for s in body)
        finally:
            self._blocks.pop()

    def stmt(self, node: Stmt) -> Stmt:
        if isinstance(node, Let):
            value = self.expr(node.value)
            return replace(node, value=value, slot=self._declare(node.name, _LOCAL))

        if isinstance(node, Assign):
            value = self.expr(node.value)
            found = self._lookup(node.name)
            if found is None:
                raise self._unbound(node.name, node.span)
            depth, slot, kind = found
            if depth > 0 or kind == _CAPTURE:
                raise self._compiler.error(f"cannot assign to captured field '{node.name}'", node.span)
            if kind == _LOOP:
                raise self._compiler.error(f"cannot assign to loop variable '{node.name}'", node.span)
            return replace(node, value=value, slot=slot)

        if isinstance(node, For):
            start = self.expr(node.start)
            stop = self.expr(node.stop)
            self._blocks.append({})
            try:
                slot = self._declare(node.name, _LOOP)
                body = self.stmts(node.body)
            finally:
                self._blocks.pop()
            return replace(node, start=start, stop=stop, body=body, slot=slot)

        if isinstance(node, If):
            return replace(
                node,
                condition=self.expr(node.condition),
                then=self.stmts(node.then),
                orelse=self.stmts(node.orelse),
            )

        if isinstance(node, Break):
            return node

        raise AssertionError(f"unknown statement: {node!r}")

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def expr(self, node: Expr) -> Expr:
        if isinstance(node, (Number, String, Bool)):
            return node

        if isinstance(node, Var):
            found = self._lookup(node.name)
            if found is None:
                raise self._unbound(node.name, node.span)
            depth, slot, _ = found
            return replace(node, depth=depth, slot=slot)

        if isinstance(node, ListExpr):
            return replace(node, items=tuple(self.expr(e) for e in node.items))

        if isinstance(node, RecordExpr):
            seen: set[str] = set()
            fields = []
            for name, value in node.fields:
                if name in seen:
                    raise self._compiler.error(f"duplicate record field '{name}'", node.span)
                seen.add(name)
                fields.append((name, self.expr(value)))
            return replace(node, fields=tuple(fields))

        if isinstance(node, Index):
            return replace(node, target=self.expr(node.target), index=self.expr(node.index))

        if isinstance(node, Attr):
            return replace(node, target=self.expr(node.target))

        if isinstance(node, Call):
            return replace(node, args=tuple(self.expr(e) for e in node.args))

        if isinstance(node, Unary):
            return replace(node, operand=self.expr(node.operand))

        if isinstance(node, Binary):
            return replace(node, left=self.expr(node.left), right=self.expr(node.right))

        if isinstance(node, Block):
            self._blocks.append({})
            try:
                body = tuple(self.stmt(s) for s in node.body)
                result = self.expr(node.result)
            finally:
                self._blocks.pop()
            return replace(node, body=body, result=result)

        raise AssertionError(f"unknown expression: {node!r}")


class Compiler:
    """Validate a parsed grammar and resolve every name it uses."""

    def __init__(self, tree: GrammarSource, source: str, filename: str) -> None:
        self._tree = tree
        self._source = source
        self._filename = filename
        self._rule_names: set[str] = set()

    def error(self, message: str, span: Span) -> GrammarSemanticError:
        return GrammarSemanticError(message, span, self._source, self._filename)

    def compile(self) -> Grammar:
        for rule in self._tree.rules:
            if rule.name in LEAF_TYPES:
                raise self.error(f"rule name '{rule.name}' shadows the leaf type of that name", rule.span)
            if rule.name in self._rule_names:
                raise self.error(f"duplicate rule '{rule.name}'", rule.span)
            self._rule_names.add(rule.name)

        if not self._tree.starts:
            raise self.error(
                "grammar has no start rule (expected a line of dashes followed by the start rule)",
                self._tree.span,
            )
        if len(self._tree.starts) > 1:
            raise self.error("more than one start rule designation", self._tree.starts[1].span)

        rules = {rule.name: replace(rule, pattern=self._pattern(rule.pattern, ())) for rule in self._tree.rules}
        start = self._pattern(self._tree.starts[0].pattern, ())

        grammar = Grammar(MappingProxyType(rules), start, self._source, self._filename)
        logger.debug(
            "compiled grammar %s: %d rules, start %s",
            self._filename,
            len(rules),
            grammar.start_rule or type(start).__name__,
        )
        return grammar

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def _pattern(self, node: Pattern, outer: tuple[dict[str, int], ...]) -> Pattern:
        if isinstance(node, (Leaf, Literal)):
            return node

        if isinstance(node, RuleRef):
            if node.name not in self._rule_names:
                raise self.error(f"reference to undefined rule '{node.name}'", node.span)
            return node

        if isinstance(node, Repeat):
            return replace(node, pattern=self._pattern(node.pattern, outer))

        if isinstance(node, Not):
            return replace(node, pattern=self._pattern(node.pattern, outer))

        if isinstance(node, Choice):
            return replace(node, alternatives=tuple(self._pattern(p, outer) for p in node.alternatives))

        if isinstance(node, Sequence):
            sequence, _ = self._sequence(node, outer)
            return sequence

        if isinstance(node, Action):
            sequence, captures = self._sequence(node.sequence, outer)
            scope = _ActionScope(self, captures, len(sequence.names), outer)
            body = scope.expr(node.body)
            return replace(node, sequence=sequence, body=body, frame_size=scope.size)

        raise AssertionError(f"unknown pattern: {node!r}")

    def _sequence(
        self, node: Sequence, outer: tuple[dict[str, int], ...]
    ) -> tuple[Sequence, dict[str, int]]:
        """Resolve a field list; returns it with the names each slot is visible under."""
        visible: dict[str, int] = {}
        fields = []
        for field in node.fields:
            if isinstance(field.pattern, Not) and field.key is not None:
                raise self.error("a negative lookahead captures nothing and cannot be bound", field.span)
            # Fields see the captures of the fields before them
            pattern = self._pattern(field.pattern, (dict(visible), *outer))
            fields.append(replace(field, pattern=pattern))
            for name in (field.key, field.alias):
                if name is None:
                    continue
                if name in visible:
                    raise self.error(f"duplicate binding '{name}' in field list", field.span)
                visible[name] = field.slot
        return replace(node, fields=tuple(fields)), visible


def compile_grammar(source: str, filename: str = "grammar.meta") -> Grammar:
    """Parse and validate grammar source text."""
    tree = parse(source, filename)
    return Compiler(tree, source, filename).compile()

