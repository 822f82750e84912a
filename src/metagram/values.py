"""Runtime values produced by matching and by action evaluation."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

Value = Any  # str | int | float | bool | tuple[Value, ...] | Record


class Record(Mapping[str, Any]):
    """Immutable, insertion-ordered mapping from field name to value.

    Compares equal to any mapping with the same items, so ``Record`` results
    can be checked against plain dict literals.
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, Any] | None = None) -> None:
        self._fields: dict[str, Any] = dict(fields or {})

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {v!r}" for k, v in self._fields.items())
        return "{" + inner + "}"

    __hash__ = None  # type: ignore[assignment]


def type_name(value: Value) -> str:
    """Name of a value's type as shown in action error messages."""
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    if isinstance(value, tuple):
        return "sequence"
    if isinstance(value, Record):
        return "record"
    return type(value).__name__


def is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clone(value: Value) -> Value:
    """Structural copy of a value, sharing nothing with the original containers."""
    if isinstance(value, tuple):
        return tuple(clone(v) for v in value)
    if isinstance(value, Record):
        return Record({k: clone(v) for k, v in value.items()})
    if isinstance(value, str):
        return "".join(value)
    return value


def freeze(value: Value) -> Value:
    """Turn working containers (list, dict) into immutable values."""
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, Record):
        return value
    if isinstance(value, dict):
        return Record({k: freeze(v) for k, v in value.items()})
    return value
