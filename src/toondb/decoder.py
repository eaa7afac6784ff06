"""TOON decoder.

Parsing is line-oriented. Every line is trimmed before matching, but its
raw indentation decides whether it belongs to the field opened by the
previous top-level line::

    name: John Doe              # Scalar
    skills[2]: rust,go          # Array
    users[2]{id,name}:          # Table header, rows follow indented
      1,Ali
      2,Sara
    address:                    # Object, pairs follow indented
      city: Tehran

Lines that match no rule are skipped unless the decoder is strict.
"""

import json
import logging
import re
from typing import Dict, List, Optional, Union

from .errors import MalformedInputError
from .value import Array, Object, Scalar, Table, Value, to_python

logger = logging.getLogger(__name__)

INDENT = "  "

_TABLE_RE = re.compile(r"^([^\[\]:]+)\[(\d+)\]\{([^}]+)\}:\s*(.*)$")
_ARRAY_RE = re.compile(r"^([^\[\]{}:]+)\[(\d+)\]:\s*(.*)$")


def _split_values(text: str) -> List[str]:
    return [v.strip() for v in text.split(",")]


def as_text(payload: Union[str, bytes]) -> str:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedInputError("TOON payload is not valid UTF-8") from None
    if not isinstance(payload, str):
        raise MalformedInputError(
            f"TOON payload must be text, not {type(payload).__name__}"
        )
    return payload.lstrip("\ufeff")


class Decoder:
    """Decode TOON text into a mapping of top-level field name to Value."""

    def __init__(self, strict: bool = False):
        self.strict = strict

    def decode(self, text: Union[str, bytes]) -> Dict[str, Value]:
        text = as_text(text)
        doc: Dict[str, Value] = {}
        context: Optional[Value] = None

        for lineno, raw in enumerate(text.split("\n"), 1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if context is not None and raw.startswith(INDENT):
                self._fold(context, line, lineno)
                continue
            context = self._top_level(doc, line, lineno)

        return doc

    def _top_level(self, doc: Dict[str, Value], line: str, lineno: int) -> Optional[Value]:
        """Assign one top-level field; return it if it accepts indented lines."""
        match = _TABLE_RE.match(line)
        if match:
            key, size, fields, rest = match.groups()
            table = Table(
                fields=_split_values(fields),
                declared=int(size),
            )
            doc[key.strip()] = table
            if rest:
                self._add_row(table, rest)
            return table

        match = _ARRAY_RE.match(line)
        if match:
            key, size, rest = match.groups()
            array = Array(declared=int(size))
            doc[key.strip()] = array
            if rest:
                array.items = _split_values(rest)[: array.declared]
                return None
            return array

        key, sep, value = line.partition(":")
        key = key.strip()
        if sep and key:
            value = value.strip()
            if not value:
                obj = Object()
                doc[key] = obj
                return obj
            doc[key] = Scalar(value)
            return None

        self._unrecognized(line, lineno)
        return None

    def _fold(self, context: Value, line: str, lineno: int) -> None:
        """Fold an indented line into the open field."""
        if isinstance(context, Table):
            self._add_row(context, line)
        elif isinstance(context, Array):
            if len(context.items) < context.declared:
                context.items.append(line)
        elif isinstance(context, Object):
            match = _ARRAY_RE.match(line)
            if match:
                key, size, rest = match.groups()
                items = _split_values(rest)[: int(size)] if rest else []
                context.fields[key.strip()] = Array(items=items, declared=int(size))
                return
            key, sep, value = line.partition(":")
            key = key.strip()
            if sep and key:
                context.fields[key] = Scalar(value.strip())
            else:
                self._unrecognized(line, lineno)

    def _add_row(self, table: Table, line: str) -> None:
        values = _split_values(line)
        if len(values) != len(table.fields):
            logger.debug(
                "Dropping row with %d column(s), header has %d",
                len(values),
                len(table.fields),
            )
            return
        if len(table.rows) < table.declared:
            table.rows.append(dict(zip(table.fields, values)))

    def _unrecognized(self, line: str, lineno: int) -> None:
        if self.strict:
            raise MalformedInputError(f"unrecognized TOON line: {line!r}", line=lineno)
        logger.debug("Skipping unrecognized line %d", lineno)


def decode(text: Union[str, bytes], strict: bool = False) -> Dict[str, Value]:
    """Decode TOON text. Lenient unless ``strict`` is set."""
    return Decoder(strict=strict).decode(text)


def validate(text: Union[str, bytes], strict: bool = False) -> None:
    """Raise MalformedInputError if ``text`` is not acceptable TOON."""
    decode(text, strict=strict)


def toon_to_json(text: Union[str, bytes], strict: bool = False, indent: Optional[int] = 2) -> str:
    """Convert TOON text to a JSON object string."""
    return json.dumps(to_python(decode(text, strict=strict)), indent=indent, ensure_ascii=False)
