"""
Local cache: one SQLite table per entity collection, keyed by record id.

Reads degrade to empty results so "no data yet" and "never synced" look the same
to callers. Writes raise: an unknown collection is a programming error and a
missing store means the session has no cache at all.
"""

import json
import os
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterable, Optional

from .logs import json_log
from .stores import ALL_COLLECTIONS


class CacheError(Exception):
    pass


class StorageOpenError(CacheError):
    pass


class StoreNotInitializedError(CacheError):
    pass


class UnknownCollectionError(CacheError):
    def __init__(self, collection: str):
        super().__init__(f"unknown collection: {collection}")
        self.collection = collection


def _now_ms() -> int:
    return int(time.time() * 1000)


def _table(collection: str) -> str:
    # Names come from the fixed collection list only; quoting keeps camelCase intact.
    return f'"cache_{collection}"'


class LocalDB:
    def __init__(self, path: str, collections: Iterable[str] = ALL_COLLECTIONS):
        self.path = path
        self.collections = tuple(collections)
        self._known = set(self.collections)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._batch_depth = 0

    def __enter__(self):
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def init(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            conn = None
            try:
                conn = sqlite3.connect(self.path, check_same_thread=False)
                if self.path != ":memory:":
                    conn.execute("PRAGMA journal_mode=WAL")
                for name in self.collections:
                    conn.execute(
                        f"""
                        CREATE TABLE IF NOT EXISTS {_table(name)} (
                          id TEXT PRIMARY KEY,
                          data TEXT NOT NULL,
                          updated_at INTEGER NOT NULL
                        )
                        """
                    )
                conn.commit()
            except sqlite3.Error as ex:
                if conn is not None:
                    conn.close()
                raise StorageOpenError(f"cannot open local cache at {os.path.abspath(self.path)}: {ex}") from ex
            self._conn = conn

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            self._batch_depth = 0

    def _require(self, collection: str) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreNotInitializedError("local cache is not initialized")
        if collection not in self._known:
            raise UnknownCollectionError(collection)
        return self._conn

    def _commit(self) -> None:
        if self._batch_depth == 0 and self._conn is not None:
            self._conn.commit()

    @contextmanager
    def batch(self):
        """
        Group writes into a single transaction: commit on success, rollback on error.
        Other threads wait for the batch to finish before touching the store.
        """
        with self._lock:
            if self._conn is None:
                raise StoreNotInitializedError("local cache is not initialized")
            conn = self._conn
            self._batch_depth += 1
            try:
                yield self
            except BaseException:
                self._batch_depth -= 1
                if self._batch_depth == 0:
                    conn.rollback()
                raise
            else:
                self._batch_depth -= 1
                if self._batch_depth == 0:
                    conn.commit()

    def get_all(self, collection: str) -> list[dict[str, Any]]:
        if self._conn is None or collection not in self._known:
            return []
        try:
            with self._lock:
                rows = self._conn.execute(f"SELECT data FROM {_table(collection)} ORDER BY rowid").fetchall()
        except sqlite3.Error as ex:
            json_log("warning", "cache.get_all.failed", collection=collection, error=str(ex))
            return []
        return [json.loads(r[0]) for r in rows]

    def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        if self._conn is None or collection not in self._known:
            return None
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT data FROM {_table(collection)} WHERE id = ?",
                    (str(record_id),),
                ).fetchone()
        except sqlite3.Error as ex:
            json_log("warning", "cache.get.failed", collection=collection, id=record_id, error=str(ex))
            return None
        return json.loads(row[0]) if row else None

    def count(self, collection: str) -> int:
        if self._conn is None or collection not in self._known:
            return 0
        try:
            with self._lock:
                row = self._conn.execute(f"SELECT COUNT(1) FROM {_table(collection)}").fetchone()
        except sqlite3.Error as ex:
            json_log("warning", "cache.count.failed", collection=collection, error=str(ex))
            return 0
        return int(row[0] if row else 0)

    def put(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        conn = self._require(collection)
        if not isinstance(record, dict):
            raise ValueError(f"record for {collection} must be an object, got {type(record).__name__}")
        record_id = record.get("id")
        if record_id is None or str(record_id).strip() == "":
            raise ValueError(f"record for {collection} has no id")
        now = _now_ms()
        doc = {**record, "_updatedAt": now}
        with self._lock:
            conn.execute(
                f"INSERT OR REPLACE INTO {_table(collection)} (id, data, updated_at) VALUES (?, ?, ?)",
                (str(record_id), json.dumps(doc, default=str), now),
            )
            self._commit()
        return doc

    def delete(self, collection: str, record_id: str) -> None:
        conn = self._require(collection)
        with self._lock:
            conn.execute(f"DELETE FROM {_table(collection)} WHERE id = ?", (str(record_id),))
            self._commit()

    def clear_store(self, collection: str) -> None:
        if self._conn is None:
            raise StoreNotInitializedError("local cache is not initialized")
        if collection not in self._known:
            return
        with self._lock:
            self._conn.execute(f"DELETE FROM {_table(collection)}")
            self._commit()

    def clear_all_stores(self, collections: Optional[Iterable[str]] = None) -> None:
        with self.batch():
            for name in (self.collections if collections is None else collections):
                self.clear_store(name)
