"""TOON encoder.

Renders a document (a mapping of Values or plain JSON-like data) as TOON
text. Output is deterministic: mapping order is preserved and table headers
list the sorted union of the item keys.

``decode(encode(doc)) == doc`` only holds for non-empty scalars, one-level
objects, arrays of scalars and homogeneous tables. Known losses:

- deeper objects flatten into their first-level parent
- an empty string scalar is written as ``key:`` and comes back as an
  empty object
- heterogeneous tables come back with empty cells
- a row of a one-column table whose cell is empty is a blank line, and
  the decoder drops it
- values containing commas or newlines, or with surrounding whitespace,
  split or lose the whitespace
- non-string leaves come back as text

Keys the decoder would read differently (empty, padded with whitespace,
starting with ``#``, or containing ``:``, brackets, braces or line breaks)
raise MalformedInputError. Table field names also may not contain ``,``.
"""

import json
from typing import Any, List, Mapping, Sequence, Union

from .decoder import INDENT
from .errors import MalformedInputError
from .value import Array, Object, Scalar, Table, Value, format_scalar, table_fields

_KEY_RESERVED = frozenset(":[]{}\r\n")


def check_key(key: str, table_field: bool = False) -> str:
    """Reject a field name that would not decode back to itself."""
    if (
        not key
        or key != key.strip()
        or key.startswith("#")
        or any(ch in _KEY_RESERVED for ch in key)
        or (table_field and "," in key)
    ):
        raise MalformedInputError(f"Key cannot be written as TOON: {key!r}")
    return key


def encode(tree: Mapping[str, Union[Value, Any]], indent: int = 0) -> str:
    """Encode a document as TOON text."""
    out: List[str] = []
    _encode_mapping(tree, indent, out)
    return "".join(out)


def _encode_mapping(tree: Mapping[str, Any], depth: int, out: List[str]) -> None:
    for key, value in tree.items():
        _encode_field(check_key(str(key)), value, depth, out)


def _scalar_line(pad: str, key: str, text: str) -> str:
    if not text:
        return f"{pad}{key}:\n"
    return f"{pad}{key}: {text}\n"


def _encode_field(key: str, value: Any, depth: int, out: List[str]) -> None:
    pad = INDENT * depth

    if isinstance(value, Scalar):
        out.append(_scalar_line(pad, key, value.text))
    elif isinstance(value, Object):
        out.append(f"{pad}{key}:\n")
        _encode_mapping(value.fields, depth + 1, out)
    elif isinstance(value, Array):
        _encode_list(key, value.items, depth, out)
    elif isinstance(value, Table):
        _encode_table(key, value.fields, value.rows, depth, out)
    elif isinstance(value, Mapping):
        out.append(f"{pad}{key}:\n")
        _encode_mapping(value, depth + 1, out)
    elif isinstance(value, (list, tuple)):
        if value and all(isinstance(item, Mapping) for item in value):
            _encode_table(key, table_fields(value), value, depth, out)
        else:
            _encode_list(key, value, depth, out)
    else:
        out.append(_scalar_line(pad, key, format_scalar(value)))


def _encode_list(key: str, items: Sequence[Any], depth: int, out: List[str]) -> None:
    pad = INDENT * depth
    if not items:
        out.append(f"{pad}{key}[0]:\n")
        return
    values = ",".join(format_scalar(item) for item in items)
    out.append(f"{pad}{key}[{len(items)}]: {values}\n")


def _encode_table(
    key: str,
    fields: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    depth: int,
    out: List[str],
) -> None:
    pad = INDENT * depth
    for f in fields:
        check_key(f, table_field=True)
    out.append(f"{pad}{key}[{len(rows)}]{{{','.join(fields)}}}:\n")
    for row in rows:
        cells = [format_scalar(row[f]) if f in row else "" for f in fields]
        out.append(f"{pad}{INDENT}{','.join(cells)}\n")


def json_to_toon(json_text: Union[str, bytes]) -> str:
    """Convert a JSON object document to TOON text."""
    try:
        data = json.loads(json_text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Invalid JSON: {e}") from None
    if not isinstance(data, dict):
        raise MalformedInputError("JSON document must be an object")
    return encode(data)
