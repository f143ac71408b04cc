"""Cámara de Diputados: roster, profile and project-listing scrapers.

Pages handled:

- ``/diputados/`` roster, table ``#tablaDiputados`` (photo, name link,
  district, bloc, term).
- ``/diputados/<slug>/`` profile page (profession, birth date, photo, email).
- ``/diputados/<slug>/listado-proyectos.html?tipoFirmante=<role>`` project
  listings, one per signing role.  The ``.textoPaginador`` footer carries the
  authoritative total; the first page of ``#tablesorter`` rows is the fallback.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date

from bs4 import BeautifulSoup, NavigableString, Tag

from ..config import DIPUTADOS_CONCURRENCY
from ..errors import CongresoError, ParseStructureMissing
from ..models import DIPUTADOS, Legislator, ProfileDetails, ProjectCounts
from ..normalize import (
    normalize_birth_date,
    normalize_photo_url,
    normalize_space,
    parse_project_total,
    slug_from_url,
    split_full_name,
    to_absolute_url,
)
from ..security import is_allowed_host
from .base import ChamberScraper

LOGGER = logging.getLogger(__name__)

BASE_URL = "https://www.diputados.gov.ar"
LIST_URL = f"{BASE_URL}/diputados/"
ALLOWED_HOSTS: tuple[str, ...] = ("diputados.gov.ar",)

SPONSOR = "firmante"
COSPONSOR = "cofirmante"

# Ordered fallbacks: the first selector yielding text wins.
PROFESSION_SELECTORS = (".encabezadoProfesion span", ".datosPersonales .profesion")
BIRTH_DATE_SELECTORS = (".encabezadoFecha span", ".datosPersonales .fechaNacimiento")
PHOTO_SELECTORS = (".siteDiputadoPerfil .box1 img", 'img[title*="Foto Diputado"]')

PROFESSION_LABEL = "Profesión:"
BIRTH_DATE_LABEL = "Fecha de Nacimiento:"


# ── roster ───────────────────────────────────────────────────────────────────


def parse_roster(html: str) -> list[Legislator]:
    """Parse the deputies roster into partially-filled :class:`Legislator` records.

    Rows with fewer than five cells, a missing required field or a profile
    link outside the allow-list are skipped (an off-site photo counts as
    missing); repeated slugs keep the first row.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one("#tablaDiputados")
    if table is None:
        LOGGER.warning("Roster table #tablaDiputados not found")
        return []

    records: list[Legislator] = []
    seen: set[str] = set()
    for row in table.select("tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 5:
            continue

        img = cells[0].find("img")
        photo = to_absolute_url(img.get("src") if img else None, BASE_URL)
        if photo and not is_allowed_host(photo, ALLOWED_HOSTS):
            LOGGER.debug("Ignoring off-site roster photo %s", photo)
            photo = ""
        anchor = cells[1].find("a", href=True)
        full_name = normalize_space(anchor.get_text(" ")) if anchor else ""
        link = to_absolute_url(anchor["href"] if anchor else None, BASE_URL)
        district = normalize_space(cells[2].get_text(" "))
        bloc = normalize_space(cells[3].get_text(" "))
        term = normalize_space(cells[4].get_text(" "))

        if link and not is_allowed_host(link, ALLOWED_HOSTS):
            LOGGER.warning("Dropping roster row with off-site profile link %s", link)
            continue
        slug = slug_from_url(link)
        if not all((full_name, district, bloc, term, photo, link, slug)):
            continue
        if slug in seen:
            LOGGER.debug("Duplicate roster slug %s skipped", slug)
            continue
        seen.add(slug)

        surname, given_name = split_full_name(full_name)
        records.append(
            Legislator(
                chamber=DIPUTADOS,
                display_name=normalize_space(f"{given_name} {surname}"),
                surname=surname,
                given_name=given_name,
                district=district,
                bloc=bloc,
                term=term,
                photo_url=photo,
                profile_url=link,
                slug=slug,
            )
        )
    return records


# ── profile ──────────────────────────────────────────────────────────────────


def _first_text(soup: BeautifulSoup, selectors: tuple[str, ...]) -> str:
    for selector in selectors:
        node = soup.select_one(selector)
        if node is not None:
            text = normalize_space(node.get_text(" "))
            if text:
                return text
    return ""


def _labeled_value(soup: BeautifulSoup, label: str) -> str:
    """Value printed after ``label``: same text node, else the next sibling."""
    node = soup.find(string=re.compile(re.escape(label)))
    if node is None:
        return ""
    trailing = normalize_space(str(node).split(label, 1)[-1])
    if trailing:
        return trailing
    for start in (node, node.parent):
        if start is None:
            continue
        for sibling in start.next_siblings:
            if isinstance(sibling, Tag):
                value = normalize_space(sibling.get_text(" "))
            elif isinstance(sibling, NavigableString):
                value = normalize_space(str(sibling))
            else:
                continue
            if value:
                return value
    return ""


def _photo(soup: BeautifulSoup) -> str:
    for selector in PHOTO_SELECTORS:
        img = soup.select_one(selector)
        if img is None or not img.get("src"):
            continue
        url = normalize_photo_url(to_absolute_url(img.get("src"), BASE_URL))
        if is_allowed_host(url, ALLOWED_HOSTS):
            return url
        LOGGER.debug("Ignoring off-site profile photo %s", url)
    return ""


def _email(soup: BeautifulSoup) -> str:
    link = soup.select_one('a[href^="mailto:"]')
    if link is None:
        return ""
    return link["href"].removeprefix("mailto:").split("?")[0].strip().lower()


def parse_profile(html: str, *, today: date | None = None) -> ProfileDetails:
    soup = BeautifulSoup(html, "html.parser")
    profession = _first_text(soup, PROFESSION_SELECTORS) or _labeled_value(soup, PROFESSION_LABEL)
    birth_raw = _first_text(soup, BIRTH_DATE_SELECTORS) or _labeled_value(soup, BIRTH_DATE_LABEL)
    return ProfileDetails(
        profession=profession,
        birth_date=normalize_birth_date(birth_raw, today=today),
        photo_url=_photo(soup),
        email=_email(soup),
    )


# ── project listings ─────────────────────────────────────────────────────────


def projects_url(profile_url: str, role: str) -> str:
    base = profile_url if profile_url.endswith("/") else f"{profile_url}/"
    return f"{base}listado-proyectos.html?tipoFirmante={role}"


def parse_project_count(html: str) -> int:
    """Total projects on a listing page: paginator text, else first-page rows."""
    soup = BeautifulSoup(html, "html.parser")
    paginator = soup.select_one(".textoPaginador")
    if paginator is not None:
        total = parse_project_total(paginator.get_text(" "))
        if total is not None:
            return total
    table = soup.select_one("table#tablesorter")
    if table is None:
        raise ParseStructureMissing("table#tablesorter")
    return len(table.select("tbody tr"))


# ── scraper ──────────────────────────────────────────────────────────────────


@dataclass
class DiputadosScraper(ChamberScraper):
    concurrency: int = DIPUTADOS_CONCURRENCY

    chamber = DIPUTADOS
    base_url = BASE_URL
    list_url = LIST_URL
    allowed_hosts = ALLOWED_HOSTS
    list_event = "list_loaded"
    event_prefix = "deputy"

    def parse_roster(self, html: str) -> list[Legislator]:
        return parse_roster(html)

    async def fetch_details(self, record: Legislator) -> ProfileDetails:
        html = await self.fetcher.fetch(record.profile_url)
        return parse_profile(html)

    async def count_role(self, record: Legislator, role: str) -> int:
        url = projects_url(record.profile_url, role)
        try:
            html = await self.fetcher.fetch(url)
            return parse_project_count(html)
        except CongresoError as exc:
            LOGGER.warning("Could not count %s projects for %s: %s", role, record.slug, exc)
            return 0

    async def count_projects(self, record: Legislator) -> ProjectCounts:
        sponsor, cosponsor = await asyncio.gather(
            self.count_role(record, SPONSOR),
            self.count_role(record, COSPONSOR),
        )
        return ProjectCounts.by_role(sponsor, cosponsor)

    def identity(self, record: Legislator) -> dict[str, str]:
        return {"given_name": record.given_name, "surname": record.surname, "slug": record.slug}

    def done_payload(self, record: Legislator) -> dict:
        return {
            "total_projects": record.total_projects,
            "profession": record.profession,
            "birth_date": record.birth_date,
        }
