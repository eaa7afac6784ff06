"""toondb: namespaced key-value store for TOON documents."""

__version__ = "0.1.0"

from .errors import (
    ToonDBError,
    NotFoundError,
    MalformedInputError,
    InvalidNameError,
    StorageError,
    PartialRestoreError,
    ConfigError,
)
from .value import Scalar, Array, Table, Object, to_python, from_python
from .decoder import Decoder, decode, validate, toon_to_json
from .encoder import encode, json_to_toon
from .engine import Engine, SqliteEngine, MemoryEngine
from .record import Record, parse_record, parse_records, load_backup, save_backup
from .store import CollectionStore
from .config import Settings, load_settings

__all__ = [
    "ToonDBError",
    "NotFoundError",
    "MalformedInputError",
    "InvalidNameError",
    "StorageError",
    "PartialRestoreError",
    "ConfigError",
    "Scalar",
    "Array",
    "Table",
    "Object",
    "to_python",
    "from_python",
    "Decoder",
    "decode",
    "validate",
    "toon_to_json",
    "encode",
    "json_to_toon",
    "Engine",
    "SqliteEngine",
    "MemoryEngine",
    "Record",
    "parse_record",
    "parse_records",
    "load_backup",
    "save_backup",
    "CollectionStore",
    "Settings",
    "load_settings",
]
