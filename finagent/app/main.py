import time
import uuid

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings as default_settings
from .deps import require_local_access
from .local_db import StoreNotInitializedError, UnknownCollectionError
from .logs import json_log
from .remote import RemoteError
from .routers.cache import router as cache_router
from .routers.sync import router as sync_router
from .stores import SYNC_QUEUE


def _current_request_id(req: Request) -> str:
    return getattr(req.state, "request_id", "") or req.headers.get("x-request-id") or "startup"


def create_app(*, db, sync, storage, remote, config_path: str, settings: Settings = default_settings) -> FastAPI:
    app = FastAPI(title="finagent local API", version=settings.api_version)
    app.state.db = db
    app.state.sync = sync
    app.state.storage = storage
    app.state.remote = remote
    app.state.config_path = config_path

    def _error(status_code: int, detail: str, exc: Exception) -> JSONResponse:
        content = {"detail": detail}
        if settings.env in {"local", "dev"}:
            content["error"] = str(exc)
        return JSONResponse(status_code=status_code, content=content)

    # Map domain errors to 4xx/5xx so local clients get actionable responses.
    @app.exception_handler(UnknownCollectionError)
    def _unknown_collection(_req: Request, exc: Exception):
        return _error(404, "unknown collection", exc)

    @app.exception_handler(StoreNotInitializedError)
    def _store_closed(_req: Request, exc: Exception):
        return _error(503, "local cache unavailable", exc)

    @app.exception_handler(RemoteError)
    def _remote_error(_req: Request, exc: Exception):
        return _error(502, "backend unavailable", exc)

    @app.exception_handler(RequestValidationError)
    def _request_validation_error(_req: Request, exc: Exception):
        content = {"detail": "validation failed"}
        if settings.env in {"local", "dev"} and hasattr(exc, "errors"):
            content["errors"] = exc.errors()
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(ValueError)
    def _value_error(_req: Request, exc: Exception):
        return _error(400, "invalid value", exc)

    @app.exception_handler(Exception)
    def _unhandled_exception(req: Request, exc: Exception):
        rid = _current_request_id(req)
        json_log(
            "error",
            "http.request.unhandled",
            request_id=rid,
            method=req.method,
            path=req.url.path,
            error=str(exc),
        )
        content = {"detail": "internal error", "request_id": rid}
        if settings.env in {"local", "dev"}:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    # Request id echoed back to the caller, one log line per API call.
    @app.middleware("http")
    async def _request_logging(request: Request, call_next):
        rid = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
        request.state.request_id = rid
        started = time.time()
        response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        if request.url.path != "/health":
            json_log(
                "info",
                "http.request",
                request_id=rid,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=int((time.time() - started) * 1000),
            )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(sync_router, dependencies=[Depends(require_local_access)])
    app.include_router(cache_router, dependencies=[Depends(require_local_access)])

    @app.on_event("startup")
    def _startup():
        # Flush whatever was queued while the agent was down.
        sync.trigger_sync()
        json_log("info", "startup.ready", env=settings.env, version=settings.api_version, pending=db.count(SYNC_QUEUE))

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
