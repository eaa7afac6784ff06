"""Exception hierarchy for toondb."""

from typing import Optional


class ToonDBError(Exception):
    """Base class for all toondb errors."""


class NotFoundError(ToonDBError):
    """A (collection, key) pair has no stored value."""

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"Key not found: {collection}:{key}")


class MalformedInputError(ToonDBError, ValueError):
    """Input that cannot be decoded or parsed (TOON, JSON, backup records)."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class InvalidNameError(MalformedInputError):
    """Collection or key name that would not round-trip through a composite key."""


class StorageError(ToonDBError):
    """Failure reported by the underlying storage engine."""


class PartialRestoreError(StorageError):
    """Restore stopped at a failing record; earlier records stay committed."""

    def __init__(self, applied: int, record, cause: Exception):
        self.applied = applied
        self.record = record
        self.cause = cause
        where = getattr(record, "collection", "?"), getattr(record, "key", "?")
        super().__init__(
            f"Restore stopped after {applied} record(s) at {where[0]}:{where[1]}: {cause}"
        )


class ConfigError(ToonDBError, ValueError):
    """Invalid or incomplete configuration."""
