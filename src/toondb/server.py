"""toondb MCP server."""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from .decoder import decode, validate
from .engine import SqliteEngine
from .store import CollectionStore
from .value import to_python


class ToonDBServer:
    """Server exposing the collection store as MCP tools.

    Values go in and out as TOON text, so an LLM reads exactly what was
    stored.
    """

    def __init__(self, store: CollectionStore, strict_toon: bool = False):
        self.store = store
        self.strict_toon = strict_toon

    @classmethod
    def open(cls, db_path: Union[str, Path], strict_toon: bool = False) -> "ToonDBServer":
        return cls(CollectionStore(SqliteEngine(db_path)), strict_toon=strict_toon)

    def list_collections(self) -> Dict[str, List[str]]:
        return self.store.list_collections()

    def list_keys(self, collection: str) -> List[str]:
        return self.store.list_keys(collection)

    def get_value(self, collection: str, key: str) -> str:
        """Return the stored TOON text."""
        return self.store.get(collection, key)

    def set_value(self, collection: str, key: str, data: str) -> Dict[str, str]:
        """Validate TOON text, then store it verbatim."""
        validate(data, strict=self.strict_toon)
        self.store.set(collection, key, data)
        return {"collection": collection, "key": key, "message": "Data saved successfully"}

    def delete_value(self, collection: str, key: str) -> Dict[str, str]:
        self.store.delete(collection, key)
        return {"collection": collection, "key": key, "message": "Data deleted successfully"}

    def toon_to_json(self, data: str) -> Dict[str, Any]:
        """Decode TOON text to its JSON view."""
        return to_python(decode(data, strict=self.strict_toon))

    def close(self) -> None:
        self.store.close()


def run_mcp_server(db_path: str, strict_toon: bool = False):
    """Run the toondb MCP server over stdio."""
    try:
        from mcp.server.fastmcp import FastMCP
    except ImportError:
        raise ImportError(
            "MCP server requires 'mcp' package. Install with: pip install toondb[mcp]"
        )

    mcp = FastMCP("toondb")
    toondb = ToonDBServer.open(db_path, strict_toon=strict_toon)

    @mcp.tool()
    def list_collections() -> str:
        """List every collection and its keys. Call this first to see what is stored."""
        return json.dumps(toondb.list_collections(), indent=2)

    @mcp.tool()
    def list_keys(collection: str) -> str:
        """List the keys stored in one collection."""
        return json.dumps(toondb.list_keys(collection), indent=2)

    @mcp.tool()
    def get_value(collection: str, key: str) -> str:
        """Read the TOON text stored under a collection and key."""
        return toondb.get_value(collection, key)

    @mcp.tool()
    def set_value(collection: str, key: str, data: str) -> str:
        """Store TOON text under a collection and key, replacing any previous value. Lines look like 'name: value', 'tags[2]: a,b' or a table header 'users[2]{id,name}:' followed by indented comma-separated rows."""
        return json.dumps(toondb.set_value(collection, key, data))

    @mcp.tool()
    def delete_value(collection: str, key: str) -> str:
        """Delete the value under a collection and key. Deleting a missing key succeeds."""
        return json.dumps(toondb.delete_value(collection, key))

    @mcp.tool()
    def toon_to_json(data: str) -> str:
        """Convert TOON text to JSON without storing it."""
        return json.dumps(toondb.toon_to_json(data), indent=2, ensure_ascii=False)

    try:
        mcp.run(transport="stdio")
    finally:
        toondb.close()
