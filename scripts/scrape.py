#!/usr/bin/env python3
"""Sync one or both chambers of the Argentine Congress from the terminal.

Scrapes the official rosters, enriches every legislator (profile details,
project counts, photo) and upserts the result into the JSON store under
``CONGRESO_DATA_DIR``.

Usage::

    python scripts/scrape.py                         # both chambers
    python scripts/scrape.py --chamber diputados     # one chamber
    python scripts/scrape.py --stream                # print per-legislator progress
    python scripts/scrape.py --concurrency 4         # override the fan-out cap
    python scripts/scrape.py --dry-run               # scrape only, write nothing
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.table import Table

# Ensure the project is importable
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from congreso_ar.config import DATA_DIR  # noqa: E402
from congreso_ar.errors import UpstreamUnavailable  # noqa: E402
from congreso_ar.etl import SyncReport, open_scraper, sync_chamber  # noqa: E402
from congreso_ar.models import CHAMBERS, ProgressEvent  # noqa: E402
from congreso_ar.store import LegislatorStore  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(message)s",
    datefmt="%H:%M:%S",
)

console = Console()


def _print_event(event: ProgressEvent) -> None:
    data = event.to_dict()
    who = data.get("diputado") or data.get("senador") or {}
    name = who.get("name") or " ".join(filter(None, (who.get("given_name"), who.get("surname"))))
    if event.index is None:
        console.print(f"[bold cyan]{event.type}[/]: {event.total} legislators")
    elif event.type.endswith("_done"):
        console.print(f"  [green]✓[/] [{event.index}/{event.total}] {name}: {event.total_projects} projects")
    elif event.type.endswith("_error"):
        console.print(f"  [red]✗[/] [{event.index}/{event.total}] {name}: {event.error}")


async def _run(chambers: list[str], args: argparse.Namespace) -> list[SyncReport]:
    store = None if args.dry_run else LegislatorStore(DATA_DIR)
    reports: list[SyncReport] = []
    for chamber in chambers:
        console.print(f"\n[bold cyan]== {chamber} ==[/]")
        t0 = time.perf_counter()
        try:
            async with open_scraper(chamber, concurrency=args.concurrency) as scraper:
                report = await sync_chamber(
                    scraper,
                    store,
                    on_progress=_print_event if args.stream else None,
                )
        except UpstreamUnavailable as exc:
            console.print(f"[bold red]{chamber} unavailable:[/] {exc.reason}")
            continue
        console.print(f"[dim]{chamber} finished in {time.perf_counter() - t0:.1f}s[/]")
        reports.append(report)
    return reports


def _summary_table(reports: list[SyncReport], dry_run: bool) -> Table:
    table = Table(title="Sync summary" + (" (dry run)" if dry_run else ""))
    table.add_column("Chamber", style="bold")
    table.add_column("Scraped", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Modified", justify="right")
    table.add_column("Projects", justify="right")
    table.add_column("Synced at")
    for report in reports:
        table.add_row(
            report.chamber,
            str(report.total_scraped),
            str(report.created),
            str(report.modified),
            f"{sum(r.total_projects for r in report.records):,}",
            report.synced_at or "-",
        )
    return table


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Scrape Argentine Congress legislators into the local store.",
    )
    parser.add_argument(
        "--chamber",
        choices=[*CHAMBERS, "all"],
        default="all",
        help="Chamber to sync (default: all).",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Process legislators one by one and print each progress event.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Legislators enriched in parallel (default: per-chamber config).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Scrape without writing to the store.",
    )
    args = parser.parse_args()

    chambers = list(CHAMBERS) if args.chamber == "all" else [args.chamber]
    reports = asyncio.run(_run(chambers, args))

    console.print()
    console.print(_summary_table(reports, args.dry_run))
    if len(reports) < len(chambers):
        sys.exit(1)


if __name__ == "__main__":
    main()
