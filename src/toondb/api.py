"""toondb HTTP API.

Every route lives under ``/api`` and requires an ``X-API-Key`` header.
Values are posted and returned as raw TOON text; listings, acks and errors
are JSON.
"""

import logging
import secrets
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from . import __version__
from .config import Settings
from .decoder import decode, validate
from .encoder import json_to_toon
from .engine import SqliteEngine
from .errors import (
    ConfigError,
    MalformedInputError,
    NotFoundError,
    PartialRestoreError,
    StorageError,
    ToonDBError,
)
from .record import dump_records, parse_records
from .store import CollectionStore
from .value import to_python

logger = logging.getLogger(__name__)

# Collection names shadowed by fixed routes.
RESERVED_COLLECTIONS = frozenset({"collections", "convert"})

STATUS_CODES = (
    (NotFoundError, 404),
    (MalformedInputError, 400),
    (StorageError, 500),
)


def status_for(exc: ToonDBError) -> int:
    for cls, code in STATUS_CODES:
        if isinstance(exc, cls):
            return code
    return 500


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "-"


def body_text(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedInputError("Request body is not valid UTF-8") from None


def ack(**data) -> dict:
    return {"success": True, "data": data}


def _check_collection(collection: str) -> None:
    if collection in RESERVED_COLLECTIONS:
        raise MalformedInputError(f"Collection name is reserved: {collection}")


def create_app(store: CollectionStore, api_key: str, strict_toon: bool = False) -> FastAPI:
    """Build the FastAPI application around a store."""
    if not api_key:
        raise ConfigError("An API key is required to serve the HTTP API")

    app = FastAPI(
        title="toondb",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.store = store

    @app.middleware("http")
    async def authenticate(request: Request, call_next):
        start = time.perf_counter()
        provided = request.headers.get("x-api-key", "")
        if request.url.path.startswith("/api") and not secrets.compare_digest(
            provided.encode("utf-8"), api_key.encode("utf-8")
        ):
            response = JSONResponse(
                status_code=401, content={"success": False, "error": "Invalid API key"}
            )
        else:
            response = await call_next(request)
        logger.info(
            "%d | %.1fms | %s | %s | %s",
            response.status_code,
            (time.perf_counter() - start) * 1000,
            client_ip(request),
            request.method,
            request.url.path,
        )
        return response

    @app.exception_handler(ToonDBError)
    async def handle_error(request: Request, exc: ToonDBError):
        code = status_for(exc)
        content = {"success": False, "error": str(exc)}
        if isinstance(exc, PartialRestoreError):
            content["records"] = exc.applied
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content=content)

    @app.get("/api/auth")
    async def auth():
        return {"status": "success", "message": "Authentication successful"}

    @app.get("/api/collections")
    async def list_collections():
        return await run_in_threadpool(store.list_collections)

    @app.get("/api/collections/{collection}")
    async def list_keys(collection: str):
        keys = await run_in_threadpool(store.list_keys, collection)
        return ack(collection=collection, keys=keys)

    @app.delete("/api/collections/{collection}")
    async def drop_collection(collection: str):
        deleted = await run_in_threadpool(store.drop_collection, collection)
        return ack(
            collection=collection,
            deleted=deleted,
            message="Collection deleted successfully",
        )

    @app.get("/api/backup")
    async def backup():
        records = await run_in_threadpool(store.backup)
        return Response(
            content=dump_records(records),
            media_type="application/json",
            headers={"Content-Disposition": "attachment; filename=backup.json"},
        )

    @app.post("/api/restore")
    async def restore(request: Request):
        records = parse_records(await request.body())
        count = await run_in_threadpool(store.restore, records)
        return ack(message="Backup restored successfully", records=count)

    @app.post("/api/convert/toon-to-json")
    async def toon_to_json(request: Request):
        doc = decode(body_text(await request.body()), strict=strict_toon)
        return to_python(doc)

    @app.post("/api/convert/json-to-toon")
    async def json_to_toon_route(request: Request):
        return PlainTextResponse(json_to_toon(await request.body()))

    @app.get("/api/{collection}/{key}")
    async def get_value(collection: str, key: str):
        _check_collection(collection)
        data = await run_in_threadpool(store.get, collection, key)
        return PlainTextResponse(data)

    @app.post("/api/{collection}/{key}")
    async def set_value(collection: str, key: str, request: Request):
        _check_collection(collection)
        data = body_text(await request.body())
        validate(data, strict=strict_toon)
        await run_in_threadpool(store.set, collection, key, data)
        return ack(collection=collection, key=key, message="Data saved successfully")

    @app.delete("/api/{collection}/{key}")
    async def delete_value(collection: str, key: str):
        _check_collection(collection)
        await run_in_threadpool(store.delete, collection, key)
        return ack(collection=collection, key=key, message="Data deleted successfully")

    return app


def run_http_server(settings: Settings) -> None:
    """Serve the HTTP API with uvicorn until interrupted."""
    import uvicorn

    store = CollectionStore(SqliteEngine(settings.db_path))
    app = create_app(store, settings.api_key, strict_toon=settings.strict_toon)
    logger.info("toondb %s serving %s", __version__, settings.db_path)
    logger.info("http://127.0.0.1:%d (bound on host %s)", settings.port, settings.host)
    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    finally:
        store.close()
