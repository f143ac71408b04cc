"""Allow-listed async HTML fetcher with timeout and retry.

Every chamber scraper owns one :class:`HtmlFetcher` bound to that chamber's
host allow-list.  URLs are checked *before* any network traffic, including
each hop of a redirect chain, so markup that links to third-party hosts can
never make the pipeline fetch them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import urljoin

import httpx

from .config import MAX_RETRIES, REQUEST_TIMEOUT, RETRY_BACKOFF
from .errors import CongresoError, NetworkError
from .security import ensure_allowed_host, is_allowed_host

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "es-AR,es;q=0.9,en;q=0.5",
}

MAX_REDIRECTS = 5


@dataclass
class HtmlFetcher:
    allowed_hosts: tuple[str, ...]
    timeout_seconds: float = REQUEST_TIMEOUT
    max_retries: int = MAX_RETRIES
    retry_backoff: float = RETRY_BACKOFF
    client: httpx.AsyncClient | None = None
    _owns_client: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        self.allowed_hosts = tuple(h.lower() for h in self.allowed_hosts)
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers=DEFAULT_HEADERS,
                timeout=httpx.Timeout(self.timeout_seconds),
            )
            self._owns_client = True

    async def __aenter__(self) -> HtmlFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()

    def allows(self, url: str) -> bool:
        return is_allowed_host(url, self.allowed_hosts)

    # ── raw request with allow-listed redirects ──────────────────────────

    async def _send(self, method: str, url: str) -> httpx.Response:
        current = ensure_allowed_host(url, self.allowed_hosts)
        for _ in range(MAX_REDIRECTS + 1):
            # Never replay cookies picked up from a previous response.
            self.client.cookies.clear()
            # httpx times each connect/read separately; cap the whole exchange.
            resp = await asyncio.wait_for(
                self.client.request(
                    method,
                    current,
                    headers={"User-Agent": USER_AGENT},
                    timeout=self.timeout_seconds,
                    follow_redirects=False,
                ),
                self.timeout_seconds,
            )
            if not resp.is_redirect:
                return resp
            location = resp.headers.get("location", "")
            current = ensure_allowed_host(urljoin(str(resp.url), location), self.allowed_hosts)
            LOGGER.debug("Redirect %s -> %s", url, current)
        raise NetworkError(url, "too many redirects")

    # ── public API ───────────────────────────────────────────────────────

    async def fetch(self, url: str) -> str:
        """GET *url* and return its decoded body.

        Raises :class:`~congreso_ar.errors.DisallowedHost` without touching the
        network when the host is not allow-listed, and
        :class:`~congreso_ar.errors.NetworkError` once every attempt failed.
        """
        ensure_allowed_host(url, self.allowed_hosts)
        attempts = self.max_retries + 1
        reason = "no attempt made"
        for attempt in range(1, attempts + 1):
            try:
                LOGGER.debug("GET %s (attempt %d/%d)", url, attempt, attempts)
                resp = await self._send("GET", url)
            except asyncio.TimeoutError:
                reason = f"timed out after {self.timeout_seconds:g}s"
                LOGGER.warning("%s on attempt %d/%d for %s", reason, attempt, attempts, url)
            except httpx.HTTPError as exc:
                reason = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
                LOGGER.warning("%s on attempt %d/%d for %s", reason, attempt, attempts, url)
            else:
                if resp.is_success:
                    return resp.text
                reason = f"HTTP {resp.status_code}"
                LOGGER.warning("%s on attempt %d/%d for %s", reason, attempt, attempts, url)
            if attempt < attempts and self.retry_backoff > 0:
                await asyncio.sleep(self.retry_backoff * attempt)
        raise NetworkError(url, reason)

    async def probe(self, url: str) -> bool:
        """Cheap existence check: HEAD, then GET when HEAD is refused."""
        if not url or not self.allows(url):
            return False
        try:
            resp = await self._send("HEAD", url)
            if resp.status_code in (403, 405):
                resp = await self._send("GET", url)
        except (asyncio.TimeoutError, httpx.HTTPError, CongresoError) as exc:
            LOGGER.debug("Probe failed for %s: %s", url, exc)
            return False
        return resp.is_success
