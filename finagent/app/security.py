import bcrypt

from .config import load_config, save_config


def is_loopback(ip: str) -> bool:
    ip = (ip or "").strip()
    return ip in {"127.0.0.1", "::1", "localhost"}


def hash_pin(pin: str) -> str:
    pin = (pin or "").strip()
    if len(pin) < 4:
        raise ValueError("pin must be at least 4 digits")
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_pin(pin: str, hashed: str) -> bool:
    pin = (pin or "").strip()
    if not pin or not hashed:
        return False
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), hashed.encode("utf-8"))
    except Exception:
        return False


def set_admin_pin(config_path: str, pin: str) -> str:
    cfg = load_config(config_path)
    ph = hash_pin(pin)
    cfg["admin_pin_hash"] = ph
    save_config(config_path, cfg)
    return ph


def admin_pin_required(client_ip: str, cfg: dict) -> bool:
    # Require the PIN when the request comes from the LAN, or when explicitly enabled.
    if cfg.get("require_admin_pin"):
        return True
    return not is_loopback(client_ip)
