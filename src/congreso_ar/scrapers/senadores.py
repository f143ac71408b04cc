"""Senado de la Nación: roster and project-count scrapers.

The roster (``#senadoresTabla``) already carries every identity field,
including the e-mail address, so there is no separate detail request.  A
senator's profile page doubles as the first page of their project listing;
further pages are reached with ``?ProyectosSenador=<n>``.  Only the first and
the last page are fetched; the total is extrapolated as
``(last - 1) * first_page_rows + last_page_rows``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

from ..config import SENADORES_CONCURRENCY
from ..errors import CongresoError
from ..models import SENADORES, Legislator, ProfileDetails, ProjectCounts
from ..normalize import normalize_space, parse_project_total, slug_from_url, to_absolute_url
from ..security import is_allowed_host
from .base import ChamberScraper

LOGGER = logging.getLogger(__name__)

BASE_URL = "https://www.senado.gob.ar"
LIST_URL = f"{BASE_URL}/senadores/listados/listaSenadoRes"
ALLOWED_HOSTS: tuple[str, ...] = ("senado.gob.ar",)

DEFAULT_BLOC = "Sin bloque"
PAGE_PARAM = "ProyectosSenador"

_RE_PAGE = re.compile(rf"{PAGE_PARAM}=(\d+)")


def _term(cell: Tag) -> str:
    tokens = [normalize_space(line) for line in cell.get_text("\n").splitlines()]
    tokens = [token for token in tokens if token]
    if len(tokens) >= 2:
        return f"{tokens[0]} - {tokens[1]}"
    return normalize_space(cell.get_text(" "))


def _email(cell: Tag) -> str:
    link = cell.select_one('a[href^="mailto:"]')
    if link is None:
        return ""
    address = link["href"].removeprefix("mailto:").split("?")[0].strip()
    return (address or normalize_space(link.get_text(" "))).lower()


def parse_roster(html: str) -> list[Legislator]:
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one("#senadoresTabla")
    if table is None:
        LOGGER.warning("Roster table #senadoresTabla not found")
        return []

    records: list[Legislator] = []
    seen: set[str] = set()
    for row in table.select("tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 6:
            continue

        img = cells[0].find("img")
        photo = to_absolute_url((img.get("data-src") or img.get("src")) if img else None, BASE_URL)
        if photo and not is_allowed_host(photo, ALLOWED_HOSTS):
            LOGGER.debug("Ignoring off-site roster photo %s", photo)
            photo = ""
        anchor = cells[1].find("a", href=True)
        name = normalize_space(anchor.get_text(" ")) if anchor else ""
        link = to_absolute_url(anchor["href"] if anchor else None, BASE_URL)
        district = normalize_space(cells[2].get_text(" "))
        bloc = normalize_space(cells[3].get_text(" ")) or DEFAULT_BLOC
        term = _term(cells[4])

        if link and not is_allowed_host(link, ALLOWED_HOSTS):
            LOGGER.warning("Dropping roster row with off-site profile link %s", link)
            continue
        slug = slug_from_url(link)
        if not all((name, district, term, photo, link, slug)):
            continue
        if slug in seen:
            continue
        seen.add(slug)

        records.append(
            Legislator(
                chamber=SENADORES,
                display_name=name,
                district=district,
                bloc=bloc,
                term=term,
                photo_url=photo,
                profile_url=link,
                slug=slug,
                email=_email(cells[5]),
            )
        )
    return records


def count_project_rows(html: str) -> int:
    """Rows of the project table in the ``id="3"`` tab (header excluded)."""
    soup = BeautifulSoup(html, "html.parser")
    container = soup.find(id="3")
    table = container.find("table") if container is not None else None
    if table is None:
        return 0
    body_rows = table.select("tbody tr")
    if body_rows:
        return len(body_rows)
    return max(0, len(table.find_all("tr")) - 1)


def last_projects_page(html: str) -> int:
    pages = [int(n) for n in _RE_PAGE.findall(html) if int(n) > 0]
    return max(pages, default=1)


def page_url(profile_url: str, page: int) -> str:
    parsed = urlparse(profile_url)
    query = dict(parse_qsl(parsed.query))
    query[PAGE_PARAM] = str(page)
    return urlunparse(parsed._replace(query=urlencode(query)))


def extrapolate_total(first_rows: int, last_page: int, last_rows: int) -> int:
    if last_page <= 1:
        return first_rows
    return (last_page - 1) * first_rows + last_rows


@dataclass
class SenadoresScraper(ChamberScraper):
    concurrency: int = SENADORES_CONCURRENCY

    chamber = SENADORES
    base_url = BASE_URL
    list_url = LIST_URL
    allowed_hosts = ALLOWED_HOSTS
    list_event = "senators_list_loaded"
    event_prefix = "senator"

    def parse_roster(self, html: str) -> list[Legislator]:
        return parse_roster(html)

    async def fetch_details(self, record: Legislator) -> ProfileDetails:
        # Senate profiles publish neither profession nor birth date.
        return ProfileDetails(email=record.email)

    async def count_projects(self, record: Legislator) -> ProjectCounts:
        try:
            first_html = await self.fetcher.fetch(record.profile_url)
        except CongresoError as exc:
            LOGGER.warning("Could not count projects for %s: %s", record.profile_url, exc)
            return ProjectCounts()

        paginator_total = parse_project_total(BeautifulSoup(first_html, "html.parser").get_text(" "))
        if paginator_total is not None:
            return ProjectCounts(total=paginator_total)

        first_rows = count_project_rows(first_html)
        last_page = last_projects_page(first_html)
        if last_page <= 1:
            return ProjectCounts(total=first_rows)

        try:
            last_html = await self.fetcher.fetch(page_url(record.profile_url, last_page))
        except CongresoError as exc:
            LOGGER.warning(
                "Last projects page %d unavailable for %s (%s); using first page only",
                last_page,
                record.profile_url,
                exc,
            )
            return ProjectCounts(total=first_rows)
        return ProjectCounts(total=extrapolate_total(first_rows, last_page, count_project_rows(last_html)))

    def identity(self, record: Legislator) -> dict[str, str]:
        return {"name": record.display_name, "profile_url": record.profile_url}
