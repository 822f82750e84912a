"""Builtin function registry for action bodies."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from metagram.values import Record, Value, clone, is_number, type_name


class BuiltinError(Exception):
    """Raised by a builtin on bad arguments; the evaluator attaches the call site."""


@dataclass(frozen=True, slots=True)
class BuiltinDef:
    """Definition of a builtin function."""

    name: str
    min_args: int
    max_args: int
    func: Callable[..., Value]

    def arity(self) -> str:
        if self.min_args == self.max_args:
            return str(self.min_args)
        return f"{self.min_args} to {self.max_args}"


def _len(value: Value) -> int:
    if isinstance(value, (tuple, str, Record)):
        return len(value)
    raise BuiltinError(f"len() expects a sequence, str or record, got {type_name(value)}")


def _str(value: Value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if is_number(value):
        return str(value)
    raise BuiltinError(f"str() cannot convert {type_name(value)}")


def _num(value: Value) -> float:
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise BuiltinError(f"num() cannot parse {value!r} as a number") from None
    raise BuiltinError(f"num() expects str or number, got {type_name(value)}")


def _trim(value: Value) -> str:
    if not isinstance(value, str):
        raise BuiltinError(f"trim() expects str, got {type_name(value)}")
    return value.strip()


def _join(items: Value, sep: Value = "") -> str:
    if not isinstance(items, tuple):
        raise BuiltinError(f"join() expects a sequence, got {type_name(items)}")
    if not isinstance(sep, str):
        raise BuiltinError(f"join() separator must be str, got {type_name(sep)}")
    for item in items:
        if not isinstance(item, str):
            raise BuiltinError(f"join() items must be str, got {type_name(item)}")
    return sep.join(items)


def _make_builtins() -> dict[str, BuiltinDef]:
    defs: dict[str, BuiltinDef] = {}

    def d(name: str, func: Callable[..., Value], min_args: int, max_args: int | None = None) -> None:
        defs[name] = BuiltinDef(name, min_args, min_args if max_args is None else max_args, func)

    d("len", _len, 1)
    d("clone", clone, 1)
    d("str", _str, 1)
    d("num", _num, 1)
    d("trim", _trim, 1)
    d("join", _join, 1, 2)

    return defs


BUILTINS: dict[str, BuiltinDef] = _make_builtins()
