import json
import time
from typing import Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


class RemoteError(Exception):
    pass


class RemoteHTTPError(RemoteError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status: int, reason: str = "", body: str = ""):
        msg = f"http {status} {reason}".strip()
        if body:
            msg = f"{msg}: {body[:1000]}"
        super().__init__(msg)
        self.status = status
        self.body = body


class RemoteUnavailableError(RemoteError):
    """Backend could not be reached (DNS, refused connection, timeout)."""


def _decode_body(raw: bytes) -> dict:
    body = raw.decode("utf-8") if raw else ""
    if not body:
        return {}
    try:
        return json.loads(body)
    except Exception:
        return {"raw": body}


class RemoteApi:
    def __init__(self, base_url: str, token_provider: Optional[Callable[[], str]] = None, timeout_s: float = 10.0):
        self.base_url = (base_url or "").strip().rstrip("/")
        self._token_provider = token_provider or (lambda: "")
        self.timeout_s = timeout_s

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, auth: bool = True) -> dict:
        headers = {"Accept": "application/json"}
        token = (self._token_provider() or "").strip() if auth else ""
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(self, req: Request, timeout_s: Optional[float] = None):
        try:
            with urlopen(req, timeout=timeout_s or self.timeout_s) as resp:
                return _decode_body(resp.read())
        except HTTPError as ex:
            try:
                body = ex.read().decode("utf-8")
            except Exception:
                body = ""
            raise RemoteHTTPError(int(getattr(ex, "code", 0) or 0), str(getattr(ex, "reason", "") or ""), body) from ex
        except (URLError, OSError) as ex:
            raise RemoteUnavailableError(f"{req.full_url}: {getattr(ex, 'reason', ex)}") from ex

    def fetch_json(self, path: str, *, auth: bool = True, timeout_s: Optional[float] = None):
        req = Request(self.url(path), headers=self._headers(auth), method="GET")
        return self._send(req, timeout_s)

    def post_json(self, path: str, payload, *, auth: bool = True, timeout_s: Optional[float] = None):
        data = json.dumps(payload, default=str).encode("utf-8")
        req = Request(self.url(path), data=data, headers=self._headers(auth), method="POST")
        req.add_header("Content-Type", "application/json")
        return self._send(req, timeout_s)

    def login(self, email: str, password: str) -> dict:
        res = self.post_json("/api/auth/login", {"email": email, "password": password}, auth=False)
        if not (res or {}).get("token"):
            raise RemoteError("login response has no token")
        return res

    def health(self, timeout_s: float = 0.8) -> dict:
        url = self.url("/health")
        if not self.base_url:
            return {"ok": False, "error": "missing api_base_url", "latency_ms": None, "url": ""}
        started = time.time()
        try:
            data = self.fetch_json("/health", auth=False, timeout_s=max(0.2, float(timeout_s or 0.8)))
            ok = bool((data or {}).get("ok", True))
            lat = int((time.time() - started) * 1000)
            return {"ok": ok, "error": None, "latency_ms": lat, "url": url}
        except Exception as ex:
            lat = int((time.time() - started) * 1000)
            return {"ok": False, "error": str(ex), "latency_ms": lat, "url": url}
