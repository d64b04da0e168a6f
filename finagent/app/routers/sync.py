from concurrent.futures import TimeoutError as FuturesTimeoutError

from fastapi import APIRouter, Depends, HTTPException, Request

from ..config import load_config, public_config
from ..deps import get_db, get_remote, get_sync
from ..remote import RemoteError
from ..stores import SYNC_QUEUE, unmapped_collections

router = APIRouter(prefix="/api", tags=["sync"])

# Upper bound for a push request; a hung backend must not pin the HTTP worker forever.
PUSH_TIMEOUT_S = 120


@router.get("/sync/status")
def sync_status(db=Depends(get_db), sync=Depends(get_sync), remote=Depends(get_remote)):
    backend = remote.health(timeout_s=0.8)
    return {
        "ok": True,
        "status": sync.status,
        "syncing": sync.is_syncing,
        "pending": db.count(SYNC_QUEUE),
        "backend_ok": bool(backend.get("ok")),
        "backend_latency_ms": backend.get("latency_ms"),
        "backend_url": backend.get("url") or "",
        "backend_error": backend.get("error"),
        # Collections still routed to the generic /api/sync/process endpoint.
        "generic_endpoint_collections": unmapped_collections(),
    }


@router.get("/outbox")
def list_outbox(sync=Depends(get_sync)):
    return {"outbox": [item.model_dump() for item in sync.pending()]}


@router.get("/config")
def get_config(request: Request):
    return {"config": public_config(load_config(request.app.state.config_path))}


@router.post("/sync/push")
def push(sync=Depends(get_sync)):
    try:
        result = sync.sync_now(timeout=PUSH_TIMEOUT_S)
    except FuturesTimeoutError:
        # The drain keeps running in the background; poll /api/sync/status.
        raise HTTPException(status_code=504, detail="sync still running")
    return {"ok": result.failed_id is None, **result.model_dump()}


@router.post("/sync/pull")
def pull(sync=Depends(get_sync)):
    try:
        counts = sync.pull_from_server()
    except RemoteError as ex:
        raise HTTPException(status_code=502, detail=str(ex))
    if counts is None:
        return {"ok": False, "skipped": "offline"}
    return {"ok": True, "counts": counts}
