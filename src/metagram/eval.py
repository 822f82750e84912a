"""Action interpreter: evaluates action bodies against field captures."""

from __future__ import annotations

from collections.abc import Sequence as SlotList

from metagram.ast import (
    Action,
    Assign,
    Attr,
    Binary,
    Block,
    Bool,
    Break,
    Call,
    Expr,
    For,
    If,
    Index,
    Let,
    ListExpr,
    Number,
    RecordExpr,
    Stmt,
    String,
    Unary,
    Var,
)
from metagram.builtins import BUILTINS, BuiltinError
from metagram.errors import ActionEvalError
from metagram.tokens import Span
from metagram.values import Record, Value, freeze, is_number, type_name

# Marks a frame slot that has not been assigned yet
_UNSET = object()


class Evaluator:
    """Tree-walking evaluator for one action invocation.

    ``frames[0]`` is the action's own frame (captures then locals); deeper
    frames are the capture slots of enclosing field lists and are never
    written.
    """

    def __init__(
        self,
        frames: tuple[list[object], ...],
        source: str,
        rule: str | None = None,
        filename: str = "grammar.meta",
    ) -> None:
        self._frames = frames
        self._source = source
        self._rule = rule
        self._filename = filename

    def _error(self, message: str, span: Span) -> ActionEvalError:
        return ActionEvalError(message, span, self._source, self._rule, self._filename)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def exec_block(self, body: tuple[Stmt, ...]) -> bool:
        """Run statements in order. Returns True when a ``break`` was hit."""
        frame = self._frames[0]
        for stmt in body:
            if isinstance(stmt, Let):
                frame[stmt.slot] = self.eval(stmt.value)

            elif isinstance(stmt, Assign):
                value = self.eval(stmt.value)
                if stmt.op == "+=":
                    current = frame[stmt.slot]
                    if current is _UNSET:
                        raise self._error(f"variable '{stmt.name}' used before assignment", stmt.span)
                    value = self._add(current, value, stmt.span)
                frame[stmt.slot] = value

            elif isinstance(stmt, For):
                lo = self._to_int(self.eval(stmt.start), stmt.start.span, "loop bound")
                hi = self._to_int(self.eval(stmt.stop), stmt.stop.span, "loop bound")
                for i in range(lo, hi):
                    frame[stmt.slot] = i
                    if self.exec_block(stmt.body):
                        break

            elif isinstance(stmt, If):
                condition = self.eval(stmt.condition)
                if not isinstance(condition, bool):
                    raise self._error(
                        f"condition must be bool, got {type_name(condition)}", stmt.condition.span
                    )
                if self.exec_block(stmt.then if condition else stmt.orelse):
                    return True

            elif isinstance(stmt, Break):
                return True

            else:
                raise AssertionError(f"unknown statement: {stmt!r}")
        return False

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def eval(self, node: Expr) -> Value:
        if isinstance(node, (Number, String, Bool)):
            return node.value

        if isinstance(node, Var):
            try:
                value = self._frames[node.depth][node.slot]
            except IndexError:
                raise self._error(f"undefined variable '{node.name}'", node.span) from None
            if value is _UNSET:
                raise self._error(f"variable '{node.name}' used before assignment", node.span)
            return value

        if isinstance(node, ListExpr):
            return tuple(self.eval(item) for item in node.items)

        if isinstance(node, RecordExpr):
            return Record({name: self.eval(value) for name, value in node.fields})

        if isinstance(node, Index):
            return self._index(self.eval(node.target), self.eval(node.index), node)

        if isinstance(node, Attr):
            target = self.eval(node.target)
            if not isinstance(target, Record):
                raise self._error(f"cannot read field '{node.name}' of {type_name(target)}", node.span)
            if node.name not in target:
                raise self._error(f"record has no field '{node.name}'", node.span)
            return target[node.name]

        if isinstance(node, Call):
            return self._call(node)

        if isinstance(node, Unary):
            operand = self.eval(node.operand)
            if node.op == "-" and is_number(operand):
                return -operand
            if node.op == "!" and isinstance(operand, bool):
                return not operand
            raise self._error(f"cannot apply '{node.op}' to {type_name(operand)}", node.span)

        if isinstance(node, Binary):
            return self._binary(node)

        if isinstance(node, Block):
            self.exec_block(node.body)
            return self.eval(node.result)

        raise AssertionError(f"unknown expression: {node!r}")

    def _call(self, node: Call) -> Value:
        builtin = BUILTINS.get(node.name)
        if builtin is None:
            raise self._error(f"unknown builtin '{node.name}'", node.span)
        if not builtin.min_args <= len(node.args) <= builtin.max_args:
            raise self._error(
                f"{node.name}() takes {builtin.arity()} argument(s), got {len(node.args)}",
                node.span,
            )
        args = [self.eval(arg) for arg in node.args]
        try:
            return builtin.func(*args)
        except BuiltinError as exc:
            raise self._error(str(exc), node.span) from None

    def _index(self, target: Value, index: Value, node: Index) -> Value:
        if not isinstance(target, (tuple, str)):
            raise self._error(f"cannot index into {type_name(target)}", node.span)
        i = self._to_int(index, node.index.span, "index")
        if not 0 <= i < len(target):
            raise self._error(
                f"index {i} out of range for {type_name(target)} of length {len(target)}",
                node.span,
            )
        return target[i]

    def _to_int(self, value: Value, span: Span, what: str) -> int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise self._error(f"{what} must be an integer, got {type_name(value)}", span)

    def _add(self, left: Value, right: Value, span: Span) -> Value:
        if isinstance(left, str) and isinstance(right, str):
            return left + right
        if is_number(left) and is_number(right):
            return left + right
        if isinstance(left, tuple) and isinstance(right, tuple):
            return left + right
        raise self._error(f"cannot apply '+' to {type_name(left)} and {type_name(right)}", span)

    def _binary(self, node: Binary) -> Value:
        left = self.eval(node.left)
        right = self.eval(node.right)
        op = node.op

        if op == "+":
            return self._add(left, right, node.span)

        if op in ("==", "!="):
            equal = type_name(left) == type_name(right) and left == right
            if is_number(left) and is_number(right):
                equal = left == right
            return equal if op == "==" else not equal

        if op in ("<", "<=", ">", ">="):
            if not (
                (is_number(left) and is_number(right))
                or (isinstance(left, str) and isinstance(right, str))
            ):
                raise self._error(
                    f"cannot compare {type_name(left)} and {type_name(right)} with '{op}'", node.span
                )
            if op == "<":
                return left < right
            if op == "<=":
                return left <= right
            if op == ">":
                return left > right
            return left >= right

        if not (is_number(left) and is_number(right)):
            raise self._error(f"cannot apply '{op}' to {type_name(left)} and {type_name(right)}", node.span)
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                raise self._error("division by zero", node.span)
            return left / right
        raise AssertionError(f"unknown operator {op!r}")


def evaluate_action(
    action: Action,
    slots: SlotList[object],
    outer: tuple[list[object], ...],
    source: str,
    rule: str | None = None,
    filename: str = "grammar.meta",
) -> Value:
    """Evaluate an action body over its field captures and return a frozen value."""
    frame: list[object] = list(slots)
    frame.extend([_UNSET] * (action.frame_size - len(frame)))
    evaluator = Evaluator((frame, *outer), source, rule, filename)
    return freeze(evaluator.eval(action.body))
