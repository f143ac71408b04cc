"""Host allow-listing and failed-attempt tracking."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .errors import DisallowedHost

LOGGER = logging.getLogger(__name__)


def is_allowed_host(url: str, allowed_hosts: Iterable[str]) -> bool:
    """True when *url*'s host equals an allowed entry or is a subdomain of one.

    Non-http(s) and unparseable URLs are never allowed.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    if not host:
        return False
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in allowed_hosts)


def ensure_allowed_host(url: str, allowed_hosts: Iterable[str]) -> str:
    if not is_allowed_host(url, allowed_hosts):
        raise DisallowedHost(url)
    return url


def client_fingerprint(ip: str | None, user_agent: str | None) -> str:
    """Stable, non-reversible key for one client (first forwarded IP + UA)."""
    first_ip = (ip or "").split(",")[0].strip() or "unknown-ip"
    ua = user_agent or "unknown-ua"
    return hashlib.sha256(f"{first_ip}|{ua}".encode()).hexdigest()


@dataclass
class AttemptLimiter:
    """Counts failed attempts per key inside a sliding window.

    A key is locked once it has ``max_failures`` failures younger than
    ``window_seconds``.  Failures older than the window expire on the next
    access; :meth:`reset` clears a key after a successful attempt.
    """

    max_failures: int = 5
    window_seconds: float = 900.0
    clock: Callable[[], float] = time.monotonic
    _failures: dict[str, list[float]] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _prune(self, key: str, now: float) -> list[float]:
        cutoff = now - self.window_seconds
        recent = [t for t in self._failures.get(key, []) if t > cutoff]
        if recent:
            self._failures[key] = recent
        else:
            self._failures.pop(key, None)
        return recent

    def is_locked(self, key: str) -> bool:
        with self._lock:
            return len(self._prune(key, self.clock())) >= self.max_failures

    def record_failure(self, key: str) -> int:
        """Register one failure and return the number inside the window."""
        with self._lock:
            now = self.clock()
            recent = self._prune(key, now)
            recent.append(now)
            self._failures[key] = recent
            if len(recent) >= self.max_failures:
                LOGGER.warning("Client %s locked after %d failed attempts", key[:12], len(recent))
            return len(recent)

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when *key* is None."""
        with self._lock:
            if key is None:
                self._failures.clear()
            else:
                self._failures.pop(key, None)
