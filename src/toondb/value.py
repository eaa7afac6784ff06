"""TOON value model.

A decoded document is a mapping from top-level field name to one of four
node types. The format is untyped: every leaf is kept as the literal text
that appeared in the source.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union


@dataclass
class Scalar:
    """A single untyped literal."""

    text: str

    def to_python(self) -> str:
        return self.text


@dataclass
class Array:
    """An ordered list of scalars declared as ``key[n]: v1,v2,...``."""

    items: List[str] = field(default_factory=list)
    declared: int = 0

    def to_python(self) -> List[str]:
        return list(self.items)


@dataclass
class Table:
    """An array of records declared as ``key[n]{f1,f2}:`` plus data rows."""

    fields: List[str] = field(default_factory=list)
    rows: List[Dict[str, str]] = field(default_factory=list)
    declared: int = 0

    def to_python(self) -> List[Dict[str, str]]:
        return [dict(row) for row in self.rows]


@dataclass
class Object:
    """A nested mapping opened by a bare ``key:`` line."""

    fields: Dict[str, "Value"] = field(default_factory=dict)

    def to_python(self) -> Dict[str, Any]:
        return {k: v.to_python() for k, v in self.fields.items()}


Value = Union[Scalar, Array, Table, Object]


def format_scalar(value: Any) -> str:
    """Render a JSON-like leaf as TOON literal text."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return json.dumps(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def table_fields(items: List[Mapping[str, Any]]) -> List[str]:
    """Sorted union of the keys of every item."""
    names = set()
    for item in items:
        names.update(item.keys())
    return sorted(names)


def to_python(value: Union[Value, Mapping[str, Value]]) -> Any:
    """Convert a value, or a document of values, to plain JSON-like data."""
    if isinstance(value, (Scalar, Array, Table, Object)):
        return value.to_python()
    return {k: to_python(v) for k, v in value.items()}


def from_python(data: Any) -> Value:
    """Convert JSON-like data into a value tree.

    Leaves become their TOON literal text, so ``from_python(30)`` is
    ``Scalar("30")``.
    """
    if isinstance(data, (Scalar, Array, Table, Object)):
        return data
    if isinstance(data, Mapping):
        return Object({str(k): from_python(v) for k, v in data.items()})
    if isinstance(data, (list, tuple)):
        if data and all(isinstance(item, Mapping) for item in data):
            fields = table_fields(data)
            rows = [
                {f: format_scalar(item[f]) if f in item else "" for f in fields}
                for item in data
            ]
            return Table(fields=fields, rows=rows, declared=len(rows))
        items = [format_scalar(item) for item in data]
        return Array(items=items, declared=len(items))
    return Scalar(format_scalar(data))
