"""Chamber-agnostic scraping driver and per-legislator orchestration.

A concrete chamber scraper supplies the roster parser, the detail step and
the project counter; this module runs them:

1. Fetch and parse the roster.  This is the only fatal step: failure raises
   :class:`~congreso_ar.errors.UpstreamUnavailable`.
2. Enrich every legislator.  Details and project counts are fetched
   concurrently and settled independently, so one failing never discards the
   other.  Photo URLs are resolved last by probing candidates.
3. Return the records in roster order.

Without a progress callback legislators are processed by a semaphore-bounded
pool.  With a callback they are processed one at a time so that events arrive
strictly in roster order (``start``/terminal pairs for index 1..N).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import ClassVar

from ..errors import DisallowedHost, NetworkError, ParseStructureMissing, UpstreamUnavailable
from ..fetcher import HtmlFetcher
from ..models import Legislator, ProfileDetails, ProgressEvent, ProjectCounts
from ..normalize import normalize_photo_url
from ..progress import ProgressCallback, emit

LOGGER = logging.getLogger(__name__)

# Failures that degrade a record instead of marking it as errored.
EXPECTED_FAILURES: tuple[type[Exception], ...] = (
    NetworkError,
    DisallowedHost,
    ParseStructureMissing,
)


@dataclass
class ChamberScraper:
    fetcher: HtmlFetcher
    concurrency: int = 5

    chamber: ClassVar[str]
    base_url: ClassVar[str]
    list_url: ClassVar[str]
    allowed_hosts: ClassVar[tuple[str, ...]]
    list_event: ClassVar[str]
    event_prefix: ClassVar[str]

    # ── chamber hooks ────────────────────────────────────────────────────

    def parse_roster(self, html: str) -> list[Legislator]:
        raise NotImplementedError

    async def fetch_details(self, record: Legislator) -> ProfileDetails:
        raise NotImplementedError

    async def count_projects(self, record: Legislator) -> ProjectCounts:
        raise NotImplementedError

    def identity(self, record: Legislator) -> dict[str, str]:
        raise NotImplementedError

    def done_payload(self, record: Legislator) -> dict:
        return {"total_projects": record.total_projects}

    # ── public API ───────────────────────────────────────────────────────

    async def scrape(self, on_progress: ProgressCallback | None = None) -> list[Legislator]:
        try:
            html = await self.fetcher.fetch(self.list_url)
        except (NetworkError, DisallowedHost) as exc:
            LOGGER.error("Failed to fetch %s roster from %s: %s", self.chamber, self.list_url, exc)
            raise UpstreamUnavailable(self.chamber, f"roster fetch failed: {exc}") from exc

        records = self.parse_roster(html)
        if not records:
            raise UpstreamUnavailable(self.chamber, "roster held no usable rows")

        total = len(records)
        LOGGER.info("Scraping %d %s...", total, self.chamber)
        await emit(on_progress, ProgressEvent(type=self.list_event, total=total, chamber=self.chamber))

        t_start = time.perf_counter()
        if on_progress is not None:
            for index, record in enumerate(records, start=1):
                await self.process(record, index, total, on_progress)
        else:
            semaphore = asyncio.Semaphore(max(1, self.concurrency))

            async def _bounded(record: Legislator, index: int) -> None:
                async with semaphore:
                    await self.process(record, index, total, None)

            await asyncio.gather(
                *(_bounded(record, index) for index, record in enumerate(records, start=1))
            )

        LOGGER.info(
            "Scraped %d %s in %.1fs.",
            total,
            self.chamber,
            time.perf_counter() - t_start,
        )
        return records

    # ── per-legislator orchestration ─────────────────────────────────────

    async def process(
        self,
        record: Legislator,
        index: int,
        total: int,
        on_progress: ProgressCallback | None,
    ) -> None:
        """Enrich one record in place and report it; never raises for scrape errors."""
        await emit(on_progress, self._event("start", index, total, record))
        try:
            await self.enrich(record)
        except Exception as exc:
            LOGGER.exception("  [%d/%d] Unexpected error enriching %s", index, total, record.profile_url)
            record.apply_details(ProfileDetails())
            await emit(
                on_progress,
                self._event("error", index, total, record, error=str(exc) or type(exc).__name__),
            )
            return

        LOGGER.debug(
            "  [%d/%d] %s: %d projects",
            index,
            total,
            record.display_name,
            record.total_projects,
        )
        await emit(
            on_progress,
            self._event("done", index, total, record, **self.done_payload(record)),
        )

    async def enrich(self, record: Legislator) -> None:
        list_photo = record.photo_url
        details, counts = await asyncio.gather(
            self.fetch_details(record),
            self.count_projects(record),
            return_exceptions=True,
        )

        if isinstance(counts, BaseException):
            if not isinstance(counts, Exception):
                raise counts
            LOGGER.warning("Project count failed for %s: %s", record.profile_url, counts)
            counts = ProjectCounts()
        record.apply_counts(counts)

        if isinstance(details, EXPECTED_FAILURES):
            LOGGER.warning("Profile details unavailable for %s: %s", record.profile_url, details)
            details = ProfileDetails()
        elif isinstance(details, BaseException):
            raise details
        record.apply_details(details)

        record.photo_url = await self.resolve_photo(details.photo_url, list_photo)

    async def resolve_photo(self, profile_photo: str, list_photo: str) -> str:
        """Pick the first reachable photo: profile page, then roster (medium size)."""
        candidates: list[str] = []
        for url in (profile_photo, list_photo, normalize_photo_url(list_photo)):
            url = normalize_photo_url(url) if url else ""
            if url and url not in candidates:
                candidates.append(url)

        for candidate in candidates:
            if await self.fetcher.probe(candidate):
                return candidate
        return list_photo if self.fetcher.allows(list_photo) else ""

    def _event(
        self,
        phase: str,
        index: int,
        total: int,
        record: Legislator,
        **extra: object,
    ) -> ProgressEvent:
        return ProgressEvent(
            type=f"{self.event_prefix}_{phase}",
            total=total,
            index=index,
            chamber=self.chamber,
            legislator=self.identity(record),
            **extra,  # type: ignore[arg-type]
        )
