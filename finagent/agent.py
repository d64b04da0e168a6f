#!/usr/bin/env python3
"""
Local offline agent: SQLite cache + mutation queue in front of the finance backend.

Default action serves the local HTTP API. One-shot actions (--push, --pull,
--status, ...) run against the same cache and exit.
"""

import argparse
import getpass
import json
import os
import sys

try:
    from .app.config import ConfigTokenStore, load_config, public_config, save_config, settings
    from .app.connectivity import HealthProbeConnectivity, StaticConnectivity
    from .app.local_db import LocalDB, StorageOpenError
    from .app.logs import json_log
    from .app.main import create_app
    from .app.remote import RemoteApi, RemoteError
    from .app.security import set_admin_pin
    from .app.storage_service import StorageService
    from .app.stores import ENTITY_COLLECTIONS, SYNC_QUEUE, unmapped_collections
    from .app.sync_service import SyncService
except ImportError:  # pragma: no cover
    # Allow running as a script: `python3 finagent/agent.py`
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    from finagent.app.config import ConfigTokenStore, load_config, public_config, save_config, settings
    from finagent.app.connectivity import HealthProbeConnectivity, StaticConnectivity
    from finagent.app.local_db import LocalDB, StorageOpenError
    from finagent.app.logs import json_log
    from finagent.app.main import create_app
    from finagent.app.remote import RemoteApi, RemoteError
    from finagent.app.security import set_admin_pin
    from finagent.app.storage_service import StorageService
    from finagent.app.stores import ENTITY_COLLECTIONS, SYNC_QUEUE, unmapped_collections
    from finagent.app.sync_service import SyncService


class Agent:
    """Wires the cache, backend client, connectivity check and sync coordinator together."""

    def __init__(self, db_path: str, config_path: str, *, offline: bool = False, run_in_background: bool = True):
        self.config_path = config_path
        cfg = load_config(config_path)
        self.tokens = ConfigTokenStore(config_path)
        self.db = LocalDB(db_path)
        self.remote = RemoteApi(cfg.get("api_base_url") or "", self.tokens.get_token, timeout_s=settings.http_timeout_s)
        if offline:
            self.connectivity = StaticConnectivity(False)
        else:
            self.connectivity = HealthProbeConnectivity(self.remote, ttl_s=settings.health_ttl_s)
        self.sync = SyncService(self.db, self.remote, self.connectivity, run_in_background=run_in_background)
        self.storage = StorageService(self.db, self.sync)

    def open(self) -> "Agent":
        self.db.init()
        return self

    def close(self) -> None:
        self.sync.wait_idle(timeout=30)
        self.db.close()

    def login(self, email: str, password: str) -> dict:
        res = self.remote.login(email, password)
        self.tokens.set_token(res["token"], email=email)
        json_log("info", "auth.login", email=email)
        # Fresh session: bring the cache in line with the server, then flush what was queued.
        counts = self.sync.pull_from_server()
        result = self.sync.sync_now()
        return {"ok": True, "pulled": counts, "push": result.model_dump()}

    def status(self) -> dict:
        return {
            "ok": True,
            "online": self.connectivity.is_online(),
            "pending": self.db.count(SYNC_QUEUE),
            "outbox": [i.model_dump() for i in self.sync.pending()],
            "collections": {name: self.db.count(name) for name in ENTITY_COLLECTIONS},
            "generic_endpoint_collections": unmapped_collections(),
            "config": public_config(load_config(self.config_path)),
        }


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv=None):
    parser = argparse.ArgumentParser(prog="finagent")
    parser.add_argument("--init-db", action="store_true", help="Initialize the local SQLite cache and exit")
    parser.add_argument("--db", default=settings.db_path, help="SQLite cache path (env FINAGENT_DB_PATH)")
    parser.add_argument("--config", default=settings.config_path, help="Agent config JSON path (env FINAGENT_CONFIG_PATH)")
    parser.add_argument("--api-base-url", default="", help="Persist a new backend base URL into the config")
    parser.add_argument("--offline", action="store_true", help="Treat the backend as unreachable (no network calls)")
    parser.add_argument("--push", action="store_true", help="Drain the sync queue once and exit")
    parser.add_argument("--pull", action="store_true", help="Replace the local cache with the server snapshot and exit")
    parser.add_argument("--status", action="store_true", help="Print cache/queue status as JSON and exit")
    parser.add_argument("--login", metavar="EMAIL", default="", help="Log in, store the bearer token, pull and push")
    parser.add_argument("--password", default="", help="Password for --login (prompted when omitted)")
    parser.add_argument("--set-pin", metavar="PIN", default="", help="Set the admin PIN guarding LAN access and exit")
    parser.add_argument(
        "--host",
        default=os.environ.get("FINAGENT_HOST", "127.0.0.1"),
        help="HTTP host to bind (default: 127.0.0.1). Use 0.0.0.0 only with an admin PIN set.",
    )
    parser.add_argument("--port", type=int, default=int(os.environ.get("FINAGENT_PORT", "7080")), help="HTTP port (default: 7080)")
    args = parser.parse_args(argv)

    db_path = os.path.abspath(args.db)
    config_path = os.path.abspath(args.config)

    if args.api_base_url:
        cfg = load_config(config_path)
        cfg["api_base_url"] = args.api_base_url.strip()
        save_config(config_path, cfg)

    if args.set_pin:
        try:
            set_admin_pin(config_path, args.set_pin)
        except ValueError as ex:
            print(f"error: {ex}", file=sys.stderr)
            return 1
        print("ok")
        return 0

    agent = Agent(db_path, config_path, offline=args.offline)
    try:
        agent.open()
    except StorageOpenError as ex:
        # No cache means no usable session; refuse to run without persistence.
        print(f"fatal: {ex}", file=sys.stderr)
        return 2

    try:
        if args.init_db:
            print("ok")
            return 0
        if args.login:
            password = args.password or getpass.getpass("password: ")
            try:
                _print(agent.login(args.login, password))
            except (RemoteError, ValueError) as ex:
                print(f"error: {ex}", file=sys.stderr)
                return 1
            return 0
        if args.pull:
            try:
                counts = agent.sync.pull_from_server()
            except (RemoteError, ValueError) as ex:
                print(f"error: {ex}", file=sys.stderr)
                return 1
            _print({"ok": counts is not None, "counts": counts})
            return 0 if counts is not None else 1
        if args.push:
            result = agent.sync.sync_now()
            _print(result.model_dump())
            return 0 if result.failed_id is None and result.status != "offline" else 1
        if args.status:
            _print(agent.status())
            return 0

        import uvicorn

        app = create_app(
            db=agent.db,
            sync=agent.sync,
            storage=agent.storage,
            remote=agent.remote,
            config_path=config_path,
        )
        public_host = "localhost" if args.host in {"127.0.0.1", "localhost"} else args.host
        print(f"finagent running on http://{public_host}:{args.port}")
        uvicorn.run(app, host=args.host, port=args.port)
        return 0
    finally:
        agent.close()


if __name__ == "__main__":
    sys.exit(main())
