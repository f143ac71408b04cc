"""Sync orchestration: scrape one chamber, then upsert it into the store.

Both the admin API and ``scripts/scrape.py`` go through :func:`sync_chamber`.
Nothing is written when ``scrape()`` raises.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass

import httpx

from .fetcher import HtmlFetcher
from .models import DIPUTADOS, SENADORES, Legislator
from .progress import ProgressCallback
from .scrapers.base import ChamberScraper
from .scrapers.diputados import DiputadosScraper
from .scrapers.senadores import SenadoresScraper
from .store import UPSERT_KEYS, LegislatorStore, UpsertResult, build_upsert_operations

LOGGER = logging.getLogger(__name__)

SCRAPERS: dict[str, type[ChamberScraper]] = {
    DIPUTADOS: DiputadosScraper,
    SENADORES: SenadoresScraper,
}


@dataclass
class SyncReport:
    chamber: str
    total_scraped: int
    created: int
    modified: int
    synced_at: str | None
    records: list[Legislator]

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("records")
        return data


def scraper_class(chamber: str) -> type[ChamberScraper]:
    try:
        return SCRAPERS[chamber]
    except KeyError:
        raise ValueError(f"Unknown chamber: {chamber!r}") from None


@asynccontextmanager
async def open_scraper(
    chamber: str,
    *,
    concurrency: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[ChamberScraper]:
    """Yield a chamber scraper bound to a fetcher for that chamber's hosts."""
    cls = scraper_class(chamber)
    async with HtmlFetcher(cls.allowed_hosts, client=client) as fetcher:
        if concurrency is None:
            yield cls(fetcher=fetcher)
        else:
            yield cls(fetcher=fetcher, concurrency=concurrency)


async def sync_chamber(
    scraper: ChamberScraper,
    store: LegislatorStore | None,
    *,
    on_progress: ProgressCallback | None = None,
) -> SyncReport:
    """Scrape ``scraper.chamber`` and upsert the result.

    With ``store=None`` the scrape runs but nothing is persisted (dry run).
    """
    records = await scraper.scrape(on_progress=on_progress)
    operations = build_upsert_operations(records, UPSERT_KEYS[scraper.chamber])

    if store is None:
        LOGGER.info("Dry run: %d %s scraped, nothing written", len(records), scraper.chamber)
        result = UpsertResult(created=0, modified=0, total=len(operations))
    else:
        result = store.apply(scraper.chamber, operations)

    return SyncReport(
        chamber=scraper.chamber,
        total_scraped=len(records),
        created=result.created,
        modified=result.modified,
        synced_at=result.synced_at,
        records=records,
    )
