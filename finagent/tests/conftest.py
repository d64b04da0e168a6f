import os
import sys

import pytest


# Allow running pytest from either the repo root or from within `finagent/`.
# Tests import `finagent.*`, which requires the repo root on sys.path.
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from finagent.app.connectivity import StaticConnectivity  # noqa: E402
from finagent.app.local_db import LocalDB  # noqa: E402
from finagent.app.remote import RemoteHTTPError  # noqa: E402
from finagent.app.sync_service import SyncService  # noqa: E402


class FakeRemote:
    """Records calls instead of hitting the network. `fail_on` holds 1-based POST numbers that get a 500."""

    def __init__(self):
        self.posts: list[tuple[str, dict]] = []
        self.fetches: list[str] = []
        self.fail_on: set[int] = set()
        self.fail_all = False
        self.snapshot = {}
        self.fetch_error = None
        self.healthy = True

    def post_json(self, path, payload, **_kwargs):
        self.posts.append((path, payload))
        if self.fail_all or len(self.posts) in self.fail_on:
            raise RemoteHTTPError(500, "Internal Server Error", '{"error":"boom"}')
        return {"ok": True}

    def fetch_json(self, path, **_kwargs):
        self.fetches.append(path)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.snapshot

    def health(self, timeout_s=0.8):
        return {"ok": self.healthy, "error": None, "latency_ms": 1, "url": "http://backend.test/health"}


@pytest.fixture
def db(tmp_path):
    store = LocalDB(str(tmp_path / "cache.sqlite"))
    store.init()
    yield store
    store.close()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def connectivity():
    return StaticConnectivity(True)


@pytest.fixture
def sync(db, remote, connectivity):
    # Drains run inline so tests are deterministic.
    return SyncService(db, remote, connectivity, run_in_background=False)


@pytest.fixture
def statuses(sync):
    seen = []
    sync.on_status_change(seen.append)
    return seen
