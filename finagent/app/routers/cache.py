from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from ..deps import get_db, get_storage
from ..stores import ENTITY_COLLECTIONS

router = APIRouter(prefix="/api/cache", tags=["cache"])


def _require_collection(collection: str) -> str:
    # The sync queue is only reachable through /api/outbox.
    if collection not in ENTITY_COLLECTIONS:
        raise HTTPException(status_code=404, detail=f"unknown collection: {collection}")
    return collection


@router.get("/{collection}")
def list_records(collection: str, db=Depends(get_db)):
    _require_collection(collection)
    return {"collection": collection, "records": db.get_all(collection)}


@router.get("/{collection}/{record_id}")
def get_record(collection: str, record_id: str, db=Depends(get_db)):
    _require_collection(collection)
    rec = db.get(collection, record_id)
    if rec is None:
        raise HTTPException(status_code=404, detail="record not found")
    return {"record": rec}


@router.put("/{collection}")
def save_record(collection: str, data: dict[str, Any] = Body(...), storage=Depends(get_storage)):
    """Optimistic save: lands in the local cache now, reaches the backend on the next drain."""
    _require_collection(collection)
    rec = storage.save_locally_and_queue(collection, data)
    return {"ok": True, "record": rec}


@router.delete("/{collection}/{record_id}")
def delete_record(collection: str, record_id: str, storage=Depends(get_storage)):
    _require_collection(collection)
    storage.delete_locally_and_queue(collection, record_id)
    return {"ok": True}
