"""
Sync coordinator: durable mutation queue + ordered drain + full-state pull.

Local writes land in the cache first (optimistic) and are recorded in the
`sync_queue` collection. A drain replays the queue against the backend in
timestamp order, one request at a time, and stops at the first failure so a
later mutation on an entity can never overtake an earlier unsent one.

There is no backoff, retry limit or dead-letter list: a permanently rejected
entry blocks the queue until someone fixes or removes it.
"""

import threading
import time
import uuid
from concurrent.futures import Future
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ValidationError

from .logs import json_log
from .remote import RemoteError
from .stores import INITIAL_DATA_ENDPOINT, SYNC_QUEUE, endpoint_for

SyncAction = Literal["SAVE", "DELETE"]

STATUS_SYNCING = "syncing"
STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"


class SyncItem(BaseModel):
    id: str
    action: SyncAction
    store: str
    payload: dict[str, Any]
    timestamp: int


class SyncResult(BaseModel):
    status: str
    sent: int = 0
    remaining: int = 0
    failed_id: Optional[str] = None
    error: Optional[str] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyncService:
    def __init__(self, db, remote, connectivity, *, run_in_background: bool = True):
        self.db = db
        self.remote = remote
        self.connectivity = connectivity
        self.run_in_background = run_in_background
        self.status: Optional[str] = None
        self._listeners: list[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None

    def on_status_change(self, callback: Callable[[str], None]):
        self._listeners.append(callback)
        return callback

    def _notify(self, status: str) -> None:
        self.status = status
        for cb in list(self._listeners):
            try:
                cb(status)
            except Exception as ex:
                json_log("warning", "sync.listener.failed", status=status, error=str(ex))

    def _is_online(self) -> bool:
        try:
            return bool(self.connectivity.is_online())
        except Exception as ex:
            json_log("warning", "sync.connectivity.failed", error=str(ex))
            return False

    @property
    def is_syncing(self) -> bool:
        return self._inflight is not None

    def enqueue(self, action: str, store: str, payload: dict[str, Any], *, trigger: bool = True) -> SyncItem:
        if store == SYNC_QUEUE:
            raise ValueError("cannot enqueue mutations of the sync queue itself")
        payload = dict(payload or {})
        # Queue slot == entity id: a newer mutation on the same record replaces the older one.
        item = SyncItem(
            id=str(payload.get("id") or uuid.uuid4()),
            action=action,
            store=store,
            payload=payload,
            timestamp=_now_ms(),
        )
        self.db.put(SYNC_QUEUE, item.model_dump())
        json_log("info", "sync.enqueued", id=item.id, store=store, action=item.action)
        if trigger:
            self.trigger_sync()
        return item

    def pending(self) -> list[SyncItem]:
        items = []
        for row in self.db.get_all(SYNC_QUEUE):
            try:
                items.append(SyncItem.model_validate(row))
            except ValidationError as ex:
                json_log("warning", "sync.queue.invalid_entry", id=(row or {}).get("id"), error=str(ex))
        # Stable sort: equal timestamps keep insertion order.
        return sorted(items, key=lambda i: i.timestamp)

    def trigger_sync(self) -> Future:
        """
        Start a drain, or join the one already running.

        Returns a future resolving to a `SyncResult`. A drain never raises to its
        caller; failures are logged and reported through the result and status.
        The connectivity check runs on the drain worker, never on the caller.
        """
        with self._lock:
            if self._inflight is not None:
                return self._inflight
            fut: Future = Future()
            self._inflight = fut

        if self.run_in_background:
            threading.Thread(target=self._run_drain, args=(fut,), name="finagent-sync", daemon=True).start()
        else:
            self._run_drain(fut)
        return fut

    def sync_now(self, timeout: Optional[float] = None) -> SyncResult:
        return self.trigger_sync().result(timeout)

    def wait_idle(self, timeout: Optional[float] = None) -> None:
        fut = self._inflight
        if fut is not None:
            fut.result(timeout)

    def _run_drain(self, fut: Future) -> None:
        try:
            result = self._drain()
        except Exception as ex:
            json_log("error", "sync.drain.crashed", error=str(ex))
            self._notify(STATUS_OFFLINE)
            result = SyncResult(status=STATUS_OFFLINE, remaining=self.db.count(SYNC_QUEUE), error=str(ex))
        with self._lock:
            self._inflight = None
        fut.set_result(result)

    def _drain(self) -> SyncResult:
        if not self._is_online():
            self._notify(STATUS_OFFLINE)
            return SyncResult(status=STATUS_OFFLINE, remaining=self.db.count(SYNC_QUEUE))

        queue = self.pending()
        if not queue:
            self._notify(STATUS_ONLINE)
            return SyncResult(status=STATUS_ONLINE)

        self._notify(STATUS_SYNCING)
        sent = 0
        failed: Optional[SyncItem] = None
        error: Optional[str] = None
        for item in queue:
            endpoint = endpoint_for(item.store)
            try:
                self.remote.post_json(endpoint, item.model_dump())
                self._remove_sent(item)
            except Exception as ex:
                failed, error = item, str(ex)
                json_log(
                    "error",
                    "sync.drain.failed",
                    id=item.id,
                    store=item.store,
                    action=item.action,
                    endpoint=endpoint,
                    http_status=getattr(ex, "status", None),
                    error=error,
                )
                break
            sent += 1

        # A blocked queue reports as offline: the indicator stays non-online until it drains.
        if failed is None and self._is_online():
            final = STATUS_ONLINE
        else:
            final = STATUS_OFFLINE
        self._notify(final)
        remaining = self.db.count(SYNC_QUEUE)
        json_log("info", "sync.drain.done", sent=sent, remaining=remaining, blocked=failed is not None)
        return SyncResult(
            status=final,
            sent=sent,
            remaining=remaining,
            failed_id=failed.id if failed else None,
            error=error,
        )

    def _remove_sent(self, item: SyncItem) -> None:
        # The slot may have been replaced by a newer mutation while the request was in flight;
        # that one still has to be sent on the next drain. Timestamps alone can collide.
        sent = item.model_dump()
        with self.db.batch():
            current = self.db.get(SYNC_QUEUE, item.id)
            if current is None or {k: current.get(k) for k in sent} == sent:
                self.db.delete(SYNC_QUEUE, item.id)

    def pull_from_server(self) -> Optional[dict[str, int]]:
        """
        Replace every local entity collection with the server snapshot.

        Nothing is touched unless the snapshot arrives. The wipe and repopulate
        run in one transaction. Pending queue entries are kept, so offline
        writes not yet sent are not lost by a pull.
        """
        if not self._is_online():
            json_log("info", "sync.pull.skipped", reason="offline")
            return None
        try:
            data = self.remote.fetch_json(INITIAL_DATA_ENDPOINT)
        except Exception as ex:
            json_log("error", "sync.pull.failed", error=str(ex))
            raise
        if not isinstance(data, dict):
            json_log("error", "sync.pull.failed", error="initial-data is not an object")
            raise RemoteError("initial-data response is not an object")

        entity_collections = [c for c in self.db.collections if c != SYNC_QUEUE]
        counts: dict[str, int] = {}
        skipped = []
        try:
            with self.db.batch():
                self.db.clear_all_stores(entity_collections)
                for store, items in data.items():
                    if store not in entity_collections:
                        skipped.append(store)
                        continue
                    if isinstance(items, list):
                        for it in items:
                            self.db.put(store, it)
                        counts[store] = len(items)
                    elif items:
                        self.db.put(store, items)
                        counts[store] = 1
                    else:
                        counts[store] = 0
        except Exception as ex:
            json_log("error", "sync.pull.apply_failed", error=str(ex))
            raise
        json_log("info", "sync.pull.done", counts=counts, skipped=skipped)
        return counts
