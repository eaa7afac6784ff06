"""Collection store over an ordered key-value engine."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .engine import Engine
from .errors import (
    InvalidNameError,
    MalformedInputError,
    NotFoundError,
    PartialRestoreError,
    ToonDBError,
)
from .record import Record

logger = logging.getLogger(__name__)

SEPARATOR = ":"


def check_name(name: str, kind: str) -> str:
    """Reject names that would not round-trip through a composite key."""
    if not isinstance(name, str) or not name:
        raise InvalidNameError(f"{kind} name must be a non-empty string")
    if SEPARATOR in name:
        raise InvalidNameError(f"{kind} name must not contain '{SEPARATOR}': {name!r}")
    return name


def composite_key(collection: str, key: str) -> bytes:
    check_name(collection, "Collection")
    check_name(key, "Key")
    return f"{collection}{SEPARATOR}{key}".encode("utf-8")


def collection_prefix(collection: str) -> bytes:
    check_name(collection, "Collection")
    return f"{collection}{SEPARATOR}".encode("utf-8")


def split_key(raw: bytes) -> Optional[Tuple[str, str]]:
    """Split a composite key into (collection, key).

    Returns None for keys that do not split into exactly two non-empty
    parts, or are not UTF-8.
    """
    try:
        parts = raw.decode("utf-8").split(SEPARATOR)
    except UnicodeDecodeError:
        return None
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


class CollectionStore:
    """Namespaced key-value store.

    Every value lives under ``"<collection>:<key>"`` in the engine. A
    collection exists exactly as long as it holds at least one key.
    Values are stored and returned verbatim.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, collection: str, key: str) -> str:
        raw = self.engine.get(composite_key(collection, key))
        if raw is None:
            raise NotFoundError(collection, key)
        return raw.decode("utf-8")

    def set(self, collection: str, key: str, data: str) -> None:
        """Store data under (collection, key), replacing any previous value."""
        if not isinstance(data, str):
            raise MalformedInputError("Stored data must be text")
        self.engine.set(composite_key(collection, key), data.encode("utf-8"))

    def delete(self, collection: str, key: str) -> None:
        """Delete a value. Deleting a missing key is not an error."""
        self.engine.delete(composite_key(collection, key))

    def list_keys(self, collection: str) -> List[str]:
        prefix = collection_prefix(collection)
        return [
            raw[len(prefix):].decode("utf-8", errors="replace")
            for raw, _ in self.engine.scan_prefix(prefix)
        ]

    def list_collections(self) -> Dict[str, List[str]]:
        """Map every collection to its keys, from one scan of the engine."""
        collections: Dict[str, List[str]] = {}
        for raw, _ in self.engine.scan_prefix(b""):
            parts = split_key(raw)
            if parts is None:
                continue
            collections.setdefault(parts[0], []).append(parts[1])
        return collections

    def drop_collection(self, collection: str) -> int:
        """Delete every key in a collection atomically. Returns the count."""
        prefix = collection_prefix(collection)
        with self.engine.batch() as batch:
            items = batch.scan_prefix(prefix)
            for raw, _ in items:
                batch.delete(raw)
        logger.info("Dropped collection %s (%d keys)", collection, len(items))
        return len(items)

    def backup(self) -> List[Record]:
        """Snapshot every well-formed composite key as a Record."""
        records = []
        skipped = 0
        for raw, value in self.engine.scan_prefix(b""):
            parts = split_key(raw)
            if parts is None:
                skipped += 1
                continue
            records.append(
                Record(collection=parts[0], key=parts[1], data=value.decode("utf-8"))
            )
        if skipped:
            logger.warning("Backup skipped %d key(s) without a valid collection prefix", skipped)
        logger.info("Backup produced %d record(s)", len(records))
        return records

    def restore(self, records: Iterable[Record]) -> int:
        """Write records back through set().

        Existing keys not in ``records`` are left alone. The first failing
        record stops the restore; everything before it stays committed.
        """
        applied = 0
        for record in records:
            try:
                self.set(record.collection, record.key, record.data)
            except ToonDBError as e:
                logger.error(
                    "Failed to restore record %s:%s: %s", record.collection, record.key, e
                )
                raise PartialRestoreError(applied, record, e) from e
            applied += 1
        logger.info("Restored %d record(s)", applied)
        return applied

    def close(self) -> None:
        self.engine.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
