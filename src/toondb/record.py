"""Backup record format."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from .errors import MalformedInputError

FIELDS = ("collection", "key", "data")


@dataclass
class Record:
    """A single stored value: the unit of backup and restore.

    ``data`` is the TOON text exactly as it was submitted.
    """

    collection: str
    key: str
    data: str

    def to_dict(self) -> Dict[str, str]:
        return {"collection": self.collection, "key": self.key, "data": self.data}

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False)


def parse_record(data: Dict[str, Any]) -> Record:
    """Parse a dict into a Record.

    All three fields are required and must be strings. Extra fields are
    ignored.
    """
    if not isinstance(data, dict):
        raise MalformedInputError("Backup record must be a JSON object")
    missing = [f for f in FIELDS if f not in data]
    if missing:
        raise MalformedInputError(
            f"Backup record is missing field(s): {', '.join(missing)}"
        )
    for f in FIELDS:
        if not isinstance(data[f], str):
            raise MalformedInputError(f"Backup record field '{f}' must be a string")
    return Record(collection=data["collection"], key=data["key"], data=data["data"])


def parse_records(text: Union[str, bytes]) -> List[Record]:
    """Parse a backup document: a JSON array of record objects."""
    try:
        items = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Invalid backup format: {e}") from None
    if items is None:
        return []
    if not isinstance(items, list):
        raise MalformedInputError("Invalid backup format: expected a JSON array")
    return [parse_record(item) for item in items]


def dump_records(records: Iterable[Record]) -> str:
    """Render records as a backup document."""
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False) + "\n"


def save_backup(records: Iterable[Record], path: Union[str, Path]) -> None:
    """Write records to a backup JSON file."""
    with open(path, "w", encoding="utf-8") as f:
        f.write(dump_records(records))


def load_backup(path: Union[str, Path]) -> List[Record]:
    """Load records from a backup JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return parse_records(f.read())
