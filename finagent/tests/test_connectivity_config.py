import json

from finagent.app.config import ConfigTokenStore, DEFAULT_CONFIG, load_config, public_config
from finagent.app.connectivity import HealthProbeConnectivity, StaticConnectivity


class _CountingRemote:
    def __init__(self, ok=True):
        self.ok = ok
        self.calls = 0

    def health(self, timeout_s=0.8):
        self.calls += 1
        return {"ok": self.ok, "error": None, "latency_ms": 1, "url": ""}


def test_static_connectivity():
    conn = StaticConnectivity(True)
    assert conn.is_online() is True
    conn.set_online(False)
    assert conn.is_online() is False


def test_health_probe_is_cached_within_ttl():
    remote = _CountingRemote(ok=True)
    conn = HealthProbeConnectivity(remote, ttl_s=60)

    assert conn.is_online() is True
    assert conn.is_online() is True
    assert remote.calls == 1

    remote.ok = False
    conn.invalidate()
    assert conn.is_online() is False
    assert remote.calls == 2


def test_health_probe_without_cache():
    remote = _CountingRemote(ok=False)
    conn = HealthProbeConnectivity(remote, ttl_s=0)
    assert conn.is_online() is False
    assert conn.is_online() is False
    assert remote.calls == 2


def test_load_config_creates_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("FINAGENT_API_BASE_URL", raising=False)
    monkeypatch.delenv("FINAGENT_AUTH_TOKEN", raising=False)
    path = str(tmp_path / "agent.json")
    cfg = load_config(path)
    assert cfg == DEFAULT_CONFIG
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == DEFAULT_CONFIG


def test_env_overrides_config(tmp_path, monkeypatch):
    monkeypatch.setenv("FINAGENT_API_BASE_URL", "https://fin.example.com")
    cfg = load_config(str(tmp_path / "agent.json"))
    assert cfg["api_base_url"] == "https://fin.example.com"


def test_public_config_hides_secrets():
    safe = public_config({"api_base_url": "x", "auth_token": "tok", "admin_pin_hash": "$2b$..."})
    assert "auth_token" not in safe
    assert "admin_pin_hash" not in safe
    assert safe["has_auth_token"] is True


def test_token_store_persists(tmp_path, monkeypatch):
    monkeypatch.delenv("FINAGENT_AUTH_TOKEN", raising=False)
    path = str(tmp_path / "agent.json")
    tokens = ConfigTokenStore(path)
    assert tokens.get_token() == ""

    tokens.set_token("tok-1", email="ana@example.com")
    assert ConfigTokenStore(path).get_token() == "tok-1"
    assert load_config(path)["user_email"] == "ana@example.com"

    tokens.clear()
    assert tokens.get_token() == ""
