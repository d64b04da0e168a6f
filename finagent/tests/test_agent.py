import json
import os

import pytest

from finagent import agent as agent_module
from finagent.agent import main
from finagent.app.config import load_config
from finagent.app.local_db import LocalDB
from finagent.app.security import verify_pin
from finagent.app.stores import SYNC_QUEUE

from conftest import FakeRemote


@pytest.fixture
def paths(tmp_path, monkeypatch):
    monkeypatch.delenv("FINAGENT_API_BASE_URL", raising=False)
    monkeypatch.delenv("FINAGENT_AUTH_TOKEN", raising=False)
    return str(tmp_path / "cache.sqlite"), str(tmp_path / "agent.json")


def test_init_db(paths, capsys):
    db_path, config_path = paths
    assert main(["--init-db", "--db", db_path, "--config", config_path]) == 0
    assert capsys.readouterr().out.strip() == "ok"
    assert os.path.exists(db_path)


def test_unusable_cache_path_is_fatal(tmp_path, paths, capsys):
    _, config_path = paths
    db_path = str(tmp_path / "missing" / "dir" / "cache.sqlite")
    assert main(["--init-db", "--db", db_path, "--config", config_path]) == 2
    assert "fatal" in capsys.readouterr().err


def test_offline_push_keeps_queue(paths, capsys):
    db_path, config_path = paths
    with LocalDB(db_path) as db:
        db.put(SYNC_QUEUE, {"id": "t1", "action": "SAVE", "store": "transactions", "payload": {"id": "t1"}, "timestamp": 1})

    assert main(["--offline", "--push", "--db", db_path, "--config", config_path]) == 1

    out = json.loads(capsys.readouterr().out)
    assert out["status"] == "offline"
    assert out["remaining"] == 1
    with LocalDB(db_path) as db:
        assert [r["id"] for r in db.get_all(SYNC_QUEUE)] == ["t1"]


def test_offline_pull_is_skipped(paths, capsys):
    db_path, config_path = paths
    assert main(["--offline", "--pull", "--db", db_path, "--config", config_path]) == 1
    assert json.loads(capsys.readouterr().out) == {"ok": False, "counts": None}


def test_status_output(paths, capsys):
    db_path, config_path = paths
    with LocalDB(db_path) as db:
        db.put("accounts", {"id": "a1"})

    assert main(["--offline", "--status", "--db", db_path, "--config", config_path]) == 0

    out = json.loads(capsys.readouterr().out)
    assert out["online"] is False
    assert out["pending"] == 0
    assert out["collections"]["accounts"] == 1
    assert "auth_token" not in out["config"]


def test_api_base_url_is_persisted(paths):
    db_path, config_path = paths
    main(["--init-db", "--db", db_path, "--config", config_path, "--api-base-url", "https://fin.example.com"])
    assert load_config(config_path)["api_base_url"] == "https://fin.example.com"


def test_set_pin(paths, capsys):
    _, config_path = paths
    assert main(["--set-pin", "12", "--config", config_path]) == 1
    assert main(["--set-pin", "1234", "--config", config_path]) == 0
    assert verify_pin("1234", load_config(config_path)["admin_pin_hash"])


@pytest.mark.parametrize("bad_row", [{"name": "row without id"}, "not-an-object"])
def test_malformed_snapshot_fails_cleanly(paths, monkeypatch, capsys, bad_row):
    db_path, config_path = paths
    with LocalDB(db_path) as db:
        db.put("accounts", {"id": "a1"})
    remote = FakeRemote()
    remote.snapshot = {"accounts": [{"id": "a2"}, bad_row]}
    monkeypatch.setattr(agent_module, "RemoteApi", lambda *args, **kwargs: remote)

    assert main(["--pull", "--db", db_path, "--config", config_path]) == 1

    assert "error:" in capsys.readouterr().err
    with LocalDB(db_path) as db:
        assert [r["id"] for r in db.get_all("accounts")] == ["a1"]
