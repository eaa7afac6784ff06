"""Tests for toondb.value."""

import pytest
from toondb.value import (
    Array,
    Object,
    Scalar,
    Table,
    format_scalar,
    from_python,
    table_fields,
    to_python,
)


class TestFormatScalar:
    def test_string_unchanged(self):
        assert format_scalar("John Doe") == "John Doe"

    def test_none(self):
        assert format_scalar(None) == "null"

    def test_bool_before_int(self):
        """bool is a subclass of int; must render as a word."""
        assert format_scalar(True) == "true"
        assert format_scalar(False) == "false"

    def test_numbers(self):
        assert format_scalar(30) == "30"
        assert format_scalar(1.5) == "1.5"

    def test_containers_are_compact_json(self):
        assert format_scalar({"a": 1}) == '{"a":1}'
        assert format_scalar([1, "x"]) == '[1,"x"]'


class TestToPython:
    def test_nodes(self):
        assert Scalar("x").to_python() == "x"
        assert Array(items=["a", "b"], declared=2).to_python() == ["a", "b"]
        table = Table(fields=["id"], rows=[{"id": "1"}], declared=1)
        assert table.to_python() == [{"id": "1"}]

    def test_document(self):
        doc = {
            "name": Scalar("John"),
            "address": Object({"city": Scalar("Tehran")}),
        }
        assert to_python(doc) == {"name": "John", "address": {"city": "Tehran"}}

    def test_returns_copies(self):
        array = Array(items=["a"], declared=1)
        array.to_python().append("b")
        assert array.items == ["a"]


class TestFromPython:
    def test_leaves_become_text(self):
        assert from_python(30) == Scalar("30")
        assert from_python(None) == Scalar("null")

    def test_list_of_scalars(self):
        assert from_python([1, "b"]) == Array(items=["1", "b"], declared=2)

    def test_list_of_objects_becomes_table(self):
        table = from_python([{"y": 1}, {"x": 2}])
        assert table == Table(
            fields=["x", "y"],
            rows=[{"x": "", "y": "1"}, {"x": "2", "y": ""}],
            declared=2,
        )

    def test_empty_list_is_array(self):
        assert from_python([]) == Array(items=[], declared=0)

    def test_mapping_becomes_object(self):
        obj = from_python({"a": "x", "b": {"c": True}})
        assert obj == Object(
            {"a": Scalar("x"), "b": Object({"c": Scalar("true")})}
        )

    def test_values_pass_through(self):
        s = Scalar("x")
        assert from_python(s) is s


class TestTableFields:
    def test_sorted_union(self):
        assert table_fields([{"b": 1, "a": 2}, {"c": 3}]) == ["a", "b", "c"]

    def test_empty(self):
        assert table_fields([]) == []
