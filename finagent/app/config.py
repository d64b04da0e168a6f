import json
import os
from typing import List


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def __init__(self) -> None:
        self.env = os.getenv("APP_ENV", "local")
        self.db_path = os.getenv("FINAGENT_DB_PATH", os.path.abspath("finagent.sqlite"))
        self.config_path = os.getenv("FINAGENT_CONFIG_PATH", os.path.abspath("finagent.json"))
        self.http_timeout_s = _env_float("FINAGENT_HTTP_TIMEOUT_S", 10.0)
        # Connectivity probes are cached so a drain's start/end checks share one request.
        self.health_ttl_s = _env_float("FINAGENT_HEALTH_TTL_S", 2.0)
        # Browser clients of the local API (dev UI on another port).
        self.cors_origins = self._split_csv(
            os.getenv("CORS_ORIGINS", "").strip(),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"


settings = Settings()


DEFAULT_CONFIG = {
    "api_base_url": "http://localhost:3001",
    # Bearer token returned by the backend login; sent on every sync request.
    "auth_token": "",
    "user_email": "",
    # Optional admin PIN protecting the local API when bound to LAN.
    # Stored as a bcrypt hash string.
    "admin_pin_hash": "",
    # If true, require the admin PIN even for localhost requests.
    "require_admin_pin": False,
}


def load_config(path: str) -> dict:
    if not os.path.exists(path):
        save_config(path, DEFAULT_CONFIG)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    cfg = {**DEFAULT_CONFIG, **data}
    # Allow ops to override without rewriting the on-disk config.
    if os.environ.get("FINAGENT_API_BASE_URL"):
        cfg["api_base_url"] = os.environ["FINAGENT_API_BASE_URL"]
    if os.environ.get("FINAGENT_AUTH_TOKEN"):
        cfg["auth_token"] = os.environ["FINAGENT_AUTH_TOKEN"]
    return cfg


def save_config(path: str, data: dict) -> None:
    folder = os.path.dirname(os.path.abspath(path))
    if folder and not os.path.isdir(folder):
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def public_config(cfg: dict) -> dict:
    """
    Return a config payload safe to expose via the local HTTP API.

    We never want to leak the backend bearer token or the admin PIN hash via
    unauthenticated GET requests, even on loopback.
    """
    safe = dict(cfg or {})
    safe.pop("auth_token", None)
    safe.pop("admin_pin_hash", None)
    safe["has_auth_token"] = bool((cfg or {}).get("auth_token"))
    return safe


class ConfigTokenStore:
    """Keeps the bearer token in the agent config file so it survives restarts."""

    def __init__(self, path: str) -> None:
        self.path = path

    def get_token(self) -> str:
        return (load_config(self.path).get("auth_token") or "").strip()

    def set_token(self, token: str, email: str = "") -> None:
        cfg = load_config(self.path)
        cfg["auth_token"] = token or ""
        if email:
            cfg["user_email"] = email
        save_config(self.path, cfg)

    def clear(self) -> None:
        self.set_token("")
