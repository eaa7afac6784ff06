"""Ordered key-value engines behind the collection store.

The store only needs point reads and writes, ordered prefix scans and an
atomic write batch. Keys and values are raw bytes; keys sort bytewise.

Implementations:
    SqliteEngine: file-based, the default
    MemoryEngine: in-process, for tests and throwaway servers
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import StorageError

logger = logging.getLogger(__name__)

Item = Tuple[bytes, bytes]


def prefix_upper_bound(prefix: bytes) -> Optional[bytes]:
    """Smallest key greater than every key starting with ``prefix``.

    Returns None when no such key exists (empty prefix or all 0xFF bytes).
    """
    end = bytearray(prefix)
    while end:
        if end[-1] < 0xFF:
            end[-1] += 1
            return bytes(end)
        end.pop()
    return None


class WriteBatch(ABC):
    """Operations staged inside one atomic write transaction."""

    @abstractmethod
    def scan_prefix(self, prefix: bytes = b"") -> List[Item]:
        ...

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        ...

    @abstractmethod
    def delete(self, key: bytes) -> None:
        ...


class Engine(ABC):
    """Abstract ordered key-value engine."""

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Get a value by key. Returns None if not found."""

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        """Set a value. Overwrites if exists."""

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Delete a key. No-op if the key does not exist."""

    @abstractmethod
    def scan_prefix(self, prefix: bytes = b"") -> List[Item]:
        """All (key, value) pairs whose key starts with prefix, in key order.

        The result is read from a single snapshot.
        """

    @abstractmethod
    def batch(self):
        """Context manager yielding a WriteBatch.

        Everything done through the batch commits atomically when the block
        exits and is discarded if it raises.
        """

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


def _sql_scan(conn: sqlite3.Connection, prefix: bytes) -> List[Item]:
    end = prefix_upper_bound(prefix)
    if end is None:
        cursor = conn.execute(
            "SELECT key, value FROM kv WHERE key >= ? ORDER BY key", (prefix,)
        )
    else:
        cursor = conn.execute(
            "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key",
            (prefix, end),
        )
    return [(bytes(row[0]), bytes(row[1])) for row in cursor.fetchall()]


def _sql_set(conn: sqlite3.Connection, key: bytes, value: bytes) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value)
    )


def _sql_delete(conn: sqlite3.Connection, key: bytes) -> None:
    conn.execute("DELETE FROM kv WHERE key = ?", (key,))


class _SqliteBatch(WriteBatch):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def scan_prefix(self, prefix: bytes = b"") -> List[Item]:
        return _sql_scan(self.conn, prefix)

    def set(self, key: bytes, value: bytes) -> None:
        _sql_set(self.conn, key, value)

    def delete(self, key: bytes) -> None:
        _sql_delete(self.conn, key)


class SqliteEngine(Engine):
    """Key-value engine stored in a single SQLite table.

    One connection is shared across threads and serialised by a lock. The
    connection runs in autocommit mode, so every single-statement call is
    its own transaction; ``batch()`` wraps a ``BEGIN IMMEDIATE`` block.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        self._lock = threading.RLock()
        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                self.path, check_same_thread=False, isolation_level=None
            )
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key BLOB PRIMARY KEY,
                    value BLOB NOT NULL
                ) WITHOUT ROWID
                """
            )
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to open database {self.path}: {e}") from e
        logger.debug("Opened SQLite engine at %s", self.path)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def get(self, key: bytes) -> Optional[bytes]:
        with self._guard():
            row = self.conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        return bytes(row[0]) if row is not None else None

    def set(self, key: bytes, value: bytes) -> None:
        with self._guard():
            _sql_set(self.conn, key, value)

    def delete(self, key: bytes) -> None:
        with self._guard():
            _sql_delete(self.conn, key)

    def scan_prefix(self, prefix: bytes = b"") -> List[Item]:
        with self._guard():
            return _sql_scan(self.conn, prefix)

    @contextmanager
    def batch(self) -> Iterator[WriteBatch]:
        with self._guard():
            self.conn.execute("BEGIN IMMEDIATE")
            try:
                yield _SqliteBatch(self.conn)
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            try:
                self.conn.execute("COMMIT")
            except sqlite3.Error:
                self.conn.execute("ROLLBACK")
                raise

    def close(self) -> None:
        with self._lock:
            self.conn.close()
        logger.debug("Closed SQLite engine at %s", self.path)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


def _dict_scan(data: Dict[bytes, bytes], prefix: bytes) -> List[Item]:
    return sorted((k, v) for k, v in data.items() if k.startswith(prefix))


class _MemoryBatch(WriteBatch):
    def __init__(self, staged: Dict[bytes, bytes]):
        self.staged = staged

    def scan_prefix(self, prefix: bytes = b"") -> List[Item]:
        return _dict_scan(self.staged, prefix)

    def set(self, key: bytes, value: bytes) -> None:
        self.staged[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        self.staged.pop(key, None)


class MemoryEngine(Engine):
    """Dict-backed engine. Batches stage on a copy and swap it in on success."""

    def __init__(self):
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._data[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(key, None)

    def scan_prefix(self, prefix: bytes = b"") -> List[Item]:
        with self._lock:
            return _dict_scan(self._data, prefix)

    @contextmanager
    def batch(self) -> Iterator[WriteBatch]:
        with self._lock:
            staged = dict(self._data)
            yield _MemoryBatch(staged)
            self._data = staged

    def close(self) -> None:
        pass
