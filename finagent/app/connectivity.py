import threading
import time
from typing import Protocol


class Connectivity(Protocol):
    def is_online(self) -> bool:
        ...


class StaticConnectivity:
    """Connectivity flag set by hand: tests, forced offline mode."""

    def __init__(self, online: bool = True):
        self.online = online

    def is_online(self) -> bool:
        return bool(self.online)

    def set_online(self, online: bool) -> None:
        self.online = bool(online)


class HealthProbeConnectivity:
    """
    Online when the backend health endpoint answers.

    The probe result is cached for `ttl_s` so the checks at the start and end of
    one drain share a single request.
    """

    def __init__(self, remote, timeout_s: float = 0.8, ttl_s: float = 2.0):
        self.remote = remote
        self.timeout_s = timeout_s
        self.ttl_s = ttl_s
        self._lock = threading.Lock()
        self._checked_at = 0.0
        self._online = False
        self.last = {}

    def is_online(self) -> bool:
        with self._lock:
            now = time.monotonic()
            if self._checked_at and now - self._checked_at < self.ttl_s:
                return self._online
            self.last = self.remote.health(timeout_s=self.timeout_s)
            self._online = bool(self.last.get("ok"))
            self._checked_at = now
            return self._online

    def invalidate(self) -> None:
        with self._lock:
            self._checked_at = 0.0
