"""toondb CLI."""

import argparse
import json
import os
import sys
from pathlib import Path

from . import __version__
from .config import DEFAULT_DB_PATH, configure_logging
from .errors import ToonDBError


def _open_store(args):
    from .engine import SqliteEngine
    from .store import CollectionStore

    return CollectionStore(SqliteEngine(args.db))


def _read_input(source):
    """Read text from a file path, or stdin for '-' / None."""
    if source is None or source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def cmd_get(args):
    """Print the TOON text stored under a collection and key."""
    with _open_store(args) as store:
        data = store.get(args.collection, args.key)
    sys.stdout.write(data)


def cmd_set(args):
    """Validate TOON text and store it."""
    from .decoder import validate

    if args.data is not None:
        data = args.data
    else:
        data = _read_input(args.file)
    validate(data, strict=args.strict)
    with _open_store(args) as store:
        store.set(args.collection, args.key, data)
    print(f"Saved {args.collection}:{args.key}")


def cmd_delete(args):
    with _open_store(args) as store:
        store.delete(args.collection, args.key)
    print(f"Deleted {args.collection}:{args.key}")


def cmd_keys(args):
    """List the keys of one collection."""
    with _open_store(args) as store:
        keys = store.list_keys(args.collection)
    print(json.dumps({"collection": args.collection, "keys": keys}, indent=2))


def cmd_collections(args):
    """List every collection with its keys."""
    with _open_store(args) as store:
        collections = store.list_collections()
    print(json.dumps(collections, indent=2))


def cmd_drop(args):
    with _open_store(args) as store:
        count = store.drop_collection(args.collection)
    print(f"Dropped {args.collection} ({count} keys)")


def cmd_backup(args):
    """Write every record to a JSON backup file (or stdout)."""
    from .record import dump_records, save_backup

    with _open_store(args) as store:
        records = store.backup()
    if args.output:
        save_backup(records, args.output)
        print(f"Backed up {len(records)} records to {args.output}")
    else:
        sys.stdout.write(dump_records(records))


def cmd_restore(args):
    """Replay a JSON backup into the database (merge, not wipe)."""
    from .record import parse_records

    records = parse_records(_read_input(args.input))
    with _open_store(args) as store:
        count = store.restore(records)
    print(f"Restored {count} records")


def cmd_validate(args):
    """Check that a file is acceptable TOON."""
    from .decoder import decode

    doc = decode(_read_input(args.input), strict=args.strict)
    print(json.dumps({"valid": True, "fields": list(doc)}, indent=2))


def cmd_to_json(args):
    from .decoder import toon_to_json

    print(toon_to_json(_read_input(args.input), strict=args.strict))


def cmd_to_toon(args):
    from .encoder import json_to_toon

    sys.stdout.write(json_to_toon(_read_input(args.input)))


def cmd_serve(args):
    """Start the HTTP API."""
    from .config import load_settings

    settings = load_settings(
        args.config,
        api_key=args.api_key,
        db_path=args.db,
        host=args.host,
        port=args.port,
        strict_toon=True if args.strict else None,
        log_level=args.log_level,
    )
    configure_logging(settings.log_level)
    try:
        from .api import run_http_server
    except ImportError:
        raise ImportError(
            "HTTP server requires 'fastapi' and 'uvicorn'. Install with: pip install toondb[http]"
        )
    run_http_server(settings)


def cmd_mcp(args):
    """Start the MCP server."""
    from .server import run_mcp_server

    run_mcp_server(db_path=args.db, strict_toon=args.strict)


def _add_db(p):
    p.add_argument(
        "--db",
        default=os.environ.get("TOONDB_DB_PATH", DEFAULT_DB_PATH),
        help="SQLite database path",
    )


def _add_strict(p):
    p.add_argument(
        "--strict", action="store_true", help="Reject lines that are not TOON"
    )


def main():
    parser = argparse.ArgumentParser(
        prog="toondb",
        description="Namespaced key-value store for TOON documents.",
    )
    parser.add_argument(
        "--version", action="version", version=f"toondb {__version__}"
    )
    parser.add_argument(
        "--log-level", default=None, help="Logging level (default WARNING, serve: INFO)"
    )

    subparsers = parser.add_subparsers(dest="command")

    # get
    p_get = subparsers.add_parser("get", help="Print a stored value")
    p_get.add_argument("collection")
    p_get.add_argument("key")
    _add_db(p_get)
    p_get.set_defaults(func=cmd_get)

    # set
    p_set = subparsers.add_parser("set", help="Validate and store a TOON value")
    p_set.add_argument("collection")
    p_set.add_argument("key")
    p_set.add_argument("data", nargs="?", help="TOON text (default: --file or stdin)")
    p_set.add_argument("--file", help="Read TOON text from a file")
    _add_db(p_set)
    _add_strict(p_set)
    p_set.set_defaults(func=cmd_set)

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete a stored value")
    p_delete.add_argument("collection")
    p_delete.add_argument("key")
    _add_db(p_delete)
    p_delete.set_defaults(func=cmd_delete)

    # keys
    p_keys = subparsers.add_parser("keys", help="List keys in a collection")
    p_keys.add_argument("collection")
    _add_db(p_keys)
    p_keys.set_defaults(func=cmd_keys)

    # collections
    p_colls = subparsers.add_parser("collections", help="List all collections")
    _add_db(p_colls)
    p_colls.set_defaults(func=cmd_collections)

    # drop
    p_drop = subparsers.add_parser("drop", help="Delete a whole collection")
    p_drop.add_argument("collection")
    _add_db(p_drop)
    p_drop.set_defaults(func=cmd_drop)

    # backup
    p_backup = subparsers.add_parser("backup", help="Export all records as JSON")
    p_backup.add_argument("--output", "-o", help="Backup file (default: stdout)")
    _add_db(p_backup)
    p_backup.set_defaults(func=cmd_backup)

    # restore
    p_restore = subparsers.add_parser("restore", help="Import records from a JSON backup")
    p_restore.add_argument("input", help="Backup file, or - for stdin")
    _add_db(p_restore)
    p_restore.set_defaults(func=cmd_restore)

    # validate
    p_validate = subparsers.add_parser("validate", help="Check a TOON file")
    p_validate.add_argument("input", help="TOON file, or - for stdin")
    _add_strict(p_validate)
    p_validate.set_defaults(func=cmd_validate)

    # to-json
    p_to_json = subparsers.add_parser("to-json", help="Convert TOON to JSON")
    p_to_json.add_argument("input", help="TOON file, or - for stdin")
    _add_strict(p_to_json)
    p_to_json.set_defaults(func=cmd_to_json)

    # to-toon
    p_to_toon = subparsers.add_parser("to-toon", help="Convert a JSON object to TOON")
    p_to_toon.add_argument("input", help="JSON file, or - for stdin")
    p_to_toon.set_defaults(func=cmd_to_toon)

    # serve
    p_serve = subparsers.add_parser("serve", help="Start the HTTP API")
    p_serve.add_argument("--config", help="YAML config file")
    p_serve.add_argument("--api-key", help="API key (or TOONDB_API_KEY)")
    p_serve.add_argument("--db", default=None, help="SQLite database path")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    _add_strict(p_serve)
    p_serve.set_defaults(func=cmd_serve)

    # mcp
    p_mcp = subparsers.add_parser("mcp", help="Start MCP server")
    _add_db(p_mcp)
    _add_strict(p_mcp)
    p_mcp.set_defaults(func=cmd_mcp)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command != "serve":
            configure_logging(args.log_level or "WARNING")
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ToonDBError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except UnicodeDecodeError:
        print("Error: File is not valid UTF-8 text (is it a binary file?)", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
