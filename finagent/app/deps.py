from typing import Optional

from fastapi import Header, HTTPException, Request

from .config import load_config
from .security import admin_pin_required, verify_pin


def get_db(request: Request):
    return request.app.state.db


def get_sync(request: Request):
    return request.app.state.sync


def get_storage(request: Request):
    return request.app.state.storage


def get_remote(request: Request):
    return request.app.state.remote


def require_local_access(
    request: Request,
    x_admin_pin: Optional[str] = Header(None, alias="X-Admin-Pin"),
):
    """
    The agent listens on loopback by default. When it is reachable from the LAN
    (or `require_admin_pin` is set) every API call must carry the admin PIN.
    """
    cfg = load_config(request.app.state.config_path)
    client_ip = request.client.host if request.client else ""
    if not admin_pin_required(client_ip, cfg):
        return True
    if not (cfg.get("admin_pin_hash") or "").strip():
        raise HTTPException(
            status_code=503,
            detail="admin_pin_not_configured: set one with `finagent --set-pin <pin>` on the agent host",
        )
    if not verify_pin(x_admin_pin or "", cfg["admin_pin_hash"]):
        raise HTTPException(status_code=401, detail="admin pin required")
    return True
