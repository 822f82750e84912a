"""Action interpreter tests: values, control flow, runtime errors."""

from __future__ import annotations

import pytest

from metagram import run
from metagram.errors import ActionEvalError
from metagram.values import Record


@pytest.fixture
def act(grammar):
    """Evaluate an action body over one captured line ``x``."""

    def _act(body: str, text: str = "x\n"):
        return run(grammar(f"main := [x: str] => {body};"), text)

    return _act


class TestValues:
    def test_capture(self, act):
        assert act("x", "hello\n") == "hello"

    def test_literals(self, act):
        assert act("2") == 2
        assert act("2.5") == 2.5
        assert act('"s"') == "s"
        assert act("true") is True

    def test_record(self, act):
        result = act("{name: x, n: 1}")
        assert isinstance(result, Record)
        assert result == {"name": "x", "n": 1}
        assert list(result) == ["name", "n"]

    def test_empty_record(self, act):
        assert act("{}") == {}

    def test_list_is_frozen(self, act):
        result = act("{items: [x, x]}")
        assert result["items"] == ("x", "x")

    def test_index_and_attr(self, act):
        assert act("[1, 2, 3][1]") == 2
        assert act("x[0]", "abc\n") == "a"
        assert act("{ let r = {a: x}; r.a }") == "x"


class TestOperators:
    def test_arithmetic_precedence(self, act):
        assert act("1 + 2 * 3") == 7
        assert act("(1 + 2) * 3") == 9

    def test_division_is_true_division(self, act):
        assert act("7 / 2") == 3.5

    def test_string_concatenation(self, act):
        assert act('x + "!"', "hi\n") == "hi!"

    def test_sequence_concatenation(self, act):
        assert act("[1] + [2, 3]") == (1, 2, 3)

    def test_unary(self, act):
        assert act("-2") == -2
        assert act("!false") is True

    def test_equality(self, act):
        assert act("1 == 1.0") is True
        assert act('"1" == 1') is False
        assert act('x != "x"') is False

    def test_comparison(self, act):
        assert act('"a" < "b"') is True
        assert act("2 >= 2.5") is False


class TestStatements:
    def test_accumulate_in_loop(self, act):
        assert act('{ let s = ""; for i in 0..3 { s += x; } s }', "ab\n") == "ababab"

    def test_loop_counts_from_start(self, act):
        assert act("{ let total = 0; for i in 2..5 { total += i; } total }") == 9

    def test_empty_range(self, act):
        assert act("{ let n = 0; for i in 3..1 { n += 1; } n }") == 0

    def test_if_else(self, act):
        body = '{ let r = ""; if len(x) > 2 { r = "long"; } else { r = "short"; } r }'
        assert act(body, "abcd\n") == "long"
        assert act(body, "ab\n") == "short"

    def test_else_if(self, act):
        body = '{ let r = 0; if x == "a" { r = 1; } else if x == "b" { r = 2; } else { r = 3; } r }'
        assert act(body, "b\n") == 2
        assert act(body, "z\n") == 3

    def test_break_from_nested_if(self, act):
        body = "{ let n = 0; for i in 0..10 { if i == 3 { break; } n += 1; } n }"
        assert act(body) == 3

    def test_break_leaves_only_inner_loop(self, act):
        body = "{ let n = 0; for i in 0..3 { for j in 0..10 { break; } n += 1; } n }"
        assert act(body) == 3

    def test_shadowing_in_inner_block(self, act):
        body = "{ let v = 1; for i in 0..1 { let v = 2; } v }"
        assert act(body) == 1

    def test_block_expression(self, act):
        assert act("{ let a = { let b = 2; b * 2 }; a + 1 }") == 5


class TestScopes:
    def test_enclosing_captures_visible(self, grammar):
        g = grammar("main := [a: str, rest <- repeat [b: str] => a + b];")
        assert run(g, "p\nq\nr\n") == {"a": "p", "rest": ("pq", "pr")}

    def test_alias_and_key(self, grammar):
        g = grammar('main := [pic <- photo:"picture"] => pic + picture; photo := str;')
        assert run(g, "ab\n") == "abab"

    def test_locals_fresh_per_invocation(self, grammar):
        g = grammar('main := repeat [x: str] => { let s = ""; s += x; s };')
        assert run(g, "a\nb\n") == ("a", "b")

    def test_clone_makes_independent_copy(self, act):
        assert act("{ let c = clone(x); c += \"?\"; {orig: x, copy: c} }") == {
            "orig": "x",
            "copy": "x?",
        }


class TestBuiltinCalls:
    def test_len(self, act):
        assert act("len(x)", "four\n") == 4

    def test_str_of_number(self, grammar):
        g = grammar('main := [n: f64] => "n=" + str(n);')
        assert run(g, "36\n") == "n=36"

    def test_num(self, act):
        assert act("num(x) + 1", " 4 \n") == 5.0

    def test_trim_and_join(self, act):
        assert act('join([trim(x), "b"], ",")', "  a \n") == "a,b"


class TestRuntimeErrors:
    @pytest.mark.parametrize(
        ("body", "message"),
        [
            ("1 / 0", "division by zero"),
            ("[1, 2][3]", "index 3 out of range for sequence of length 2"),
            ("[1][x]", "index must be an integer, got str"),
            ("x[0]", "out of range for str of length 0"),
            ("x + 1.5", "cannot apply '\\+' to str and float"),
            ("x < 1", "cannot compare str and int with '<'"),
            ("-x", "cannot apply '-' to str"),
            ("x * 2", "cannot apply '\\*' to str and int"),
            ("x.name", "cannot read field 'name' of str"),
            ("{ let r = {a: 1}; r.b }", "record has no field 'b'"),
            ("nope(x)", "unknown builtin 'nope'"),
            ("len(x, x)", "len\\(\\) takes 1 argument\\(s\\), got 2"),
            ("join()", "join\\(\\) takes 1 to 2 argument\\(s\\), got 0"),
            ('num("abc")', "cannot parse 'abc' as a number"),
            ("{ let n = 0; if x { n = 1; } n }", "condition must be bool, got str"),
            ("{ let n = 0; for i in 0..x { n += 1; } n }", "loop bound must be an integer, got str"),
            ('{ let n = 0; n += "a"; n }', "cannot apply '\\+' to int and str"),
        ],
    )
    def test_message(self, act, body, message):
        with pytest.raises(ActionEvalError, match=message):
            act(body, "\n")

    def test_error_names_rule_and_location(self, grammar):
        g = grammar('main := [inner]; inner := [x: str] => x + 1;')
        with pytest.raises(ActionEvalError) as exc_info:
            run(g, "a\n")
        err = exc_info.value
        assert err.rule == "inner"
        assert err.span.start.line == 2
        assert "in action of rule: inner" in err.format()

    def test_error_in_start_expression_has_no_rule(self, grammar):
        g = grammar("line := str;", start="[x: str] => x + 1")
        with pytest.raises(ActionEvalError) as exc_info:
            run(g, "a\n")
        assert exc_info.value.rule is None
        assert "in action of rule" not in exc_info.value.format()
