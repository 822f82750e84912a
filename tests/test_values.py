"""Runtime value helpers."""

from __future__ import annotations

import pytest

from metagram.values import Record, freeze, is_number, type_name


class TestRecord:
    def test_mapping_interface(self):
        r = Record({"b": 1, "a": 2})
        assert list(r) == ["b", "a"]
        assert r["a"] == 2
        assert len(r) == 2
        assert "b" in r

    def test_equal_to_dict(self):
        assert Record({"a": 1}) == {"a": 1}
        assert Record({"a": 1}) != {"a": 2}

    def test_immutable(self):
        r = Record({"a": 1})
        with pytest.raises(TypeError):
            r["a"] = 2  # type: ignore[index]

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(Record())

    def test_repr(self):
        assert repr(Record({"name": "Ada", "age": 36.0})) == "{name: 'Ada', age: 36.0}"


class TestTypeName:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, "bool"),
            (1, "int"),
            (1.5, "float"),
            ("s", "str"),
            ((), "sequence"),
            (Record(), "record"),
        ],
    )
    def test_names(self, value, expected):
        assert type_name(value) == expected

    def test_bool_is_not_a_number(self):
        assert is_number(1)
        assert is_number(1.0)
        assert not is_number(True)


class TestFreeze:
    def test_nested_containers(self):
        value = freeze({"items": [1, [2, 3]], "meta": {"k": "v"}})
        assert isinstance(value, Record)
        assert value["items"] == (1, (2, 3))
        assert isinstance(value["meta"], Record)

    def test_scalars_unchanged(self):
        assert freeze("a") == "a"
        assert freeze(2.0) == 2.0
