"""Engine options and TOML config loading."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "metagram.toml"

# Expected type of each option; max_depth may also be None
_KINDS: dict[str, type] = {"memoize": bool, "require_eof": bool, "max_depth": int, "trace": bool}


@dataclass(frozen=True, slots=True)
class EngineOptions:
    """Options for one matching invocation."""

    memoize: bool = True
    require_eof: bool = True
    # None leaves only the interpreter recursion limit
    max_depth: int | None = None
    trace: bool = False


def load_config(config_path: Path | None, search_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else search_dir / CONFIG_FILENAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_options(config: dict[str, Any] | None = None, **overrides: Any) -> EngineOptions:
    """Merge the ``[engine]`` table of a config with keyword overrides.

    Precedence: defaults < config file < overrides. Config entries of the
    wrong type are ignored; overrides of the wrong type raise TypeError.
    """
    values: dict[str, Any] = {}

    table = (config or {}).get("engine")
    for f in fields(EngineOptions):
        if isinstance(table, dict) and f.name in table:
            candidate = table[f.name]
            if _same_kind(candidate, f.name):
                values[f.name] = candidate
        if f.name in overrides:
            candidate = overrides.pop(f.name)
            if not (_same_kind(candidate, f.name) or (candidate is None and f.name == "max_depth")):
                raise TypeError(f"option {f.name!r} expects {_KINDS[f.name].__name__}")
            values[f.name] = candidate

    if overrides:
        raise TypeError(f"unknown engine option(s): {', '.join(sorted(overrides))}")

    options = EngineOptions(**values)
    if options.max_depth is not None and options.max_depth < 1:
        raise ValueError("max_depth must be at least 1")
    return options


def _same_kind(value: Any, name: str) -> bool:
    kind = _KINDS[name]
    # bool is an int subclass; keep the two apart
    if kind is bool or isinstance(value, bool):
        return kind is bool and isinstance(value, bool)
    return isinstance(value, kind)
