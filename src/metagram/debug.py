"""Human-readable dump of a compiled grammar."""

from __future__ import annotations

import sys
from typing import TextIO

from metagram.ast import (
    UNBOUND,
    Action,
    Choice,
    Field,
    Grammar,
    Leaf,
    Literal,
    Not,
    Pattern,
    Repeat,
    RuleRef,
    Sequence,
)


def dump_grammar(grammar: Grammar, *, file: TextIO = sys.stderr) -> None:
    """Print the rule table and start pattern to *file*."""
    file.write(f"Grammar {grammar.filename}\n")
    for rule in grammar.rules.values():
        file.write(f"{_indent(1)}Rule {rule.name}\n")
        _dump_pattern(rule.pattern, 2, file)
    file.write(f"{_indent(1)}Start\n")
    _dump_pattern(grammar.start, 2, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _dump_pattern(node: Pattern, depth: int, f: TextIO) -> None:
    if isinstance(node, Leaf):
        f.write(f"{_indent(depth)}Leaf {node.kind}\n")
    elif isinstance(node, Literal):
        f.write(f"{_indent(depth)}Literal({node.text!r})\n")
    elif isinstance(node, RuleRef):
        suffix = f' :"{node.override}"' if node.override else ""
        f.write(f"{_indent(depth)}RuleRef {node.name}{suffix}\n")
    elif isinstance(node, Repeat):
        f.write(f"{_indent(depth)}Repeat\n")
        _dump_pattern(node.pattern, depth + 1, f)
    elif isinstance(node, Not):
        f.write(f"{_indent(depth)}Not\n")
        _dump_pattern(node.pattern, depth + 1, f)
    elif isinstance(node, Choice):
        f.write(f"{_indent(depth)}Choice\n")
        for alternative in node.alternatives:
            _dump_pattern(alternative, depth + 1, f)
    elif isinstance(node, Sequence):
        f.write(f"{_indent(depth)}Sequence\n")
        for field in node.fields:
            _dump_field(field, depth + 1, f)
    elif isinstance(node, Action):
        f.write(f"{_indent(depth)}Action frame={node.frame_size}\n")
        for field in node.sequence.fields:
            _dump_field(field, depth + 1, f)


def _dump_field(field: Field, depth: int, f: TextIO) -> None:
    if field.slot == UNBOUND:
        f.write(f"{_indent(depth)}Field\n")
    else:
        alias = f" (alias {field.alias})" if field.alias else ""
        f.write(f"{_indent(depth)}Field #{field.slot} {field.key}{alias}\n")
    _dump_pattern(field.pattern, depth + 1, f)
