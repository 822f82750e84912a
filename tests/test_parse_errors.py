"""Tests for grammar syntax error messages and positions."""

from __future__ import annotations

import pytest

from metagram import compile
from metagram.errors import GrammarError, GrammarSyntaxError
from metagram.parser import parse

from .conftest import wrap


class TestWrapper:
    def test_missing_meta(self):
        with pytest.raises(GrammarSyntaxError, match="expected 'meta'"):
            parse("a := str; --- a")

    def test_missing_open_brace(self):
        with pytest.raises(GrammarSyntaxError, match="expected '\\{' after 'meta'"):
            parse("meta a := str;")

    def test_unclosed_meta(self):
        with pytest.raises(GrammarSyntaxError, match="expected '\\}' to close"):
            parse("meta { a := str; --- a")

    def test_text_after_meta(self):
        with pytest.raises(GrammarSyntaxError, match="unexpected text after 'meta' block"):
            parse("meta { a := str; --- a } extra")


class TestRules:
    def test_missing_define(self):
        with pytest.raises(GrammarSyntaxError, match="expected ':=' after rule name 'a'"):
            parse("meta { a = str; --- a }")

    def test_missing_semicolon(self):
        with pytest.raises(GrammarSyntaxError, match="expected ';' to end rule 'a'"):
            parse("meta { a := str b := str; --- a }")

    def test_missing_pattern(self):
        with pytest.raises(GrammarSyntaxError, match="expected pattern"):
            parse("meta { a := ; --- a }")

    def test_empty_literal(self):
        with pytest.raises(GrammarSyntaxError, match="empty literal pattern"):
            parse(wrap('main := "";'))

    def test_rule_after_separator(self):
        with pytest.raises(GrammarSyntaxError, match="must come before the start separator") as exc_info:
            parse("meta {\n  a := str;\n---\n  a\n  b := f64;\n}")
        assert exc_info.value.line == 5

    def test_missing_start_expression(self):
        with pytest.raises(GrammarSyntaxError, match="expected start expression"):
            parse("meta { a := str; --- }")


class TestFieldLists:
    def test_unclosed_field_list(self):
        with pytest.raises(GrammarSyntaxError, match="expected ',' or '\\]' in field list"):
            parse(wrap("main := [a: str b: str];"))

    def test_label_with_keyword_type(self):
        with pytest.raises(GrammarSyntaxError):
            parse(wrap("main := [a: repeat str];"))


class TestActions:
    def test_block_without_value(self):
        with pytest.raises(GrammarSyntaxError, match="block must end with a value expression"):
            parse(wrap('main := [a: str] => { let s = ""; };'))

    def test_break_outside_loop(self):
        with pytest.raises(GrammarSyntaxError, match="'break' outside of a loop"):
            parse(wrap("main := [a: str] => { break; a };"))

    def test_break_inside_block_expression_in_loop(self):
        source = wrap("main := [a: str] => { for i in 0..1 { let x = { break; 1 }; } a };")
        with pytest.raises(GrammarSyntaxError, match="'break' outside of a loop"):
            parse(source)

    def test_missing_range(self):
        with pytest.raises(GrammarSyntaxError, match="expected '..' in loop range"):
            parse(wrap("main := [a: str] => { for i in 3 { } a };"))

    def test_missing_let_initializer(self):
        with pytest.raises(GrammarSyntaxError, match="expected '=' in 'let'"):
            parse(wrap("main := [a: str] => { let s; a };"))

    def test_unclosed_call(self):
        with pytest.raises(GrammarSyntaxError, match="expected ',' or '\\)' in call"):
            parse(wrap("main := [a: str] => len(a;"))

    def test_bad_expression(self):
        with pytest.raises(GrammarSyntaxError, match="expected expression"):
            parse(wrap("main := [a: str] => ;"))


class TestPositions:
    def test_error_line_and_column(self):
        source = "meta {\n  a := str;\n  b := ;\n--- a\n}"
        with pytest.raises(GrammarSyntaxError) as exc_info:
            parse(source)
        err = exc_info.value
        assert err.line == 3
        assert err.column == 8

    def test_compile_raises_grammar_error(self):
        with pytest.raises(GrammarError):
            compile("meta {")
