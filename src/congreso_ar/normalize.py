"""Shared text, URL and date normalization utilities.

Centralizes the small clean-up rules every chamber parser applies so that
roster rows, profile pages and project listings agree on one format.

**Names:**
    The lower chamber publishes ``"Surname, Given Names"``; the split happens
    on the first comma, with a first-token fallback when no comma is present.

**Dates:**
    Birth dates are published as ``D/M/YYYY``.  Values that pass a strict
    calendar check are rewritten as ``DD/MM/YYYY``; anything else is kept
    verbatim, since consumers only display it.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from urllib.parse import urljoin, urlparse

LOGGER = logging.getLogger(__name__)

_RE_WHITESPACE = re.compile(r"\s+")
_RE_BIRTH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_RE_PROJECTS_FOUND = re.compile(r"([\d.]+)\s+Proyectos?\s+Encontrados?", re.IGNORECASE)

MIN_BIRTH_YEAR = 1900


def normalize_space(value: str | None) -> str:
    """Collapse whitespace runs to one space and trim.

    Examples::

        >>> normalize_space("  Buenos \\n  Aires ")
        'Buenos Aires'
        >>> normalize_space(None)
        ''
    """
    if not value:
        return ""
    return _RE_WHITESPACE.sub(" ", value).strip()


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split ``"Surname, Given"`` into ``(surname, given)``.

    Without a usable comma the first whitespace token is the surname and the
    rest the given name.
    """
    surname_part, _, given_part = full_name.partition(",")
    surname = normalize_space(surname_part)
    given = normalize_space(given_part)
    if surname and given:
        return surname, given

    tokens = normalize_space(full_name.replace(",", " ")).split(" ")
    surname = tokens[0] if tokens else ""
    return surname, " ".join(tokens[1:])


def to_absolute_url(url: str | None, base_url: str) -> str:
    if not url:
        return ""
    url = url.strip()
    if not url:
        return ""
    try:
        return urljoin(base_url, url)
    except ValueError:
        LOGGER.debug("Could not resolve %r against %s", url, base_url)
        return url


def slug_from_url(url: str) -> str:
    """Return the final non-empty path segment of *url* ('' if none)."""
    if not url:
        return ""
    parts = [part for part in urlparse(url).path.split("/") if part]
    return parts[-1] if parts else ""


def normalize_photo_url(url: str) -> str:
    """Prefer the medium-sized rendition of a roster thumbnail."""
    return url.replace("_small.", "_medium.")


def parse_project_total(text: str | None) -> int | None:
    """Parse ``"1.234 Proyectos Encontrados"`` paginator text into ``1234``.

    Returns ``None`` when the fragment is absent.
    """
    match = _RE_PROJECTS_FOUND.search(normalize_space(text))
    if not match:
        return None
    digits = match.group(1).replace(".", "")
    if not digits.isdigit():
        return None
    return int(digits)


def normalize_birth_date(text: str | None, *, today: date | None = None) -> str:
    """Canonicalize a ``D/M/YYYY`` birth date to ``DD/MM/YYYY``.

    The year must fall in ``[1900, current year]`` and the day/month must form
    a real calendar date; otherwise the cleaned raw text is returned.
    """
    cleaned = normalize_space(text)
    match = _RE_BIRTH_DATE.match(cleaned)
    if not match:
        return cleaned
    day, month, year = (int(g) for g in match.groups())
    current_year = (today or date.today()).year
    if not MIN_BIRTH_YEAR <= year <= current_year:
        return cleaned
    try:
        parsed = date(year, month, day)
    except ValueError:
        return cleaned
    return parsed.strftime("%d/%m/%Y")
