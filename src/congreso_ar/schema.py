from __future__ import annotations

from collections.abc import Callable
from enum import Enum

import strawberry

from .models import DIPUTADOS, SENADORES
from .models import Legislator as LegislatorModel

# ── Enums ─────────────────────────────────────────────────────────────────────


@strawberry.enum
class Chamber(Enum):
    """Chamber of the Argentine National Congress."""

    DIPUTADOS = DIPUTADOS
    SENADORES = SENADORES


@strawberry.enum
class LegislatorSortField(Enum):
    NAME = "name"
    TOTAL_PROJECTS = "total_projects"


@strawberry.enum
class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


# ── Pagination ────────────────────────────────────────────────────────────────


@strawberry.type
class PageInfo:
    """Pagination metadata returned with every paginated query."""

    total_count: int = strawberry.field(
        description="Total number of items matching the query (before pagination).",
    )
    has_next_page: bool = strawberry.field(
        description="True when more items exist beyond the current page.",
    )
    has_previous_page: bool = strawberry.field(
        description="True when items exist before the current page.",
    )


# ── Types ─────────────────────────────────────────────────────────────────────


@strawberry.type
class LegislatorType:
    chamber: Chamber
    slug: str
    display_name: str
    surname: str
    given_name: str
    district: str
    bloc: str
    term: str
    profession: str
    birth_date: str
    email: str
    photo_url: str
    profile_url: str
    total_projects: int
    projects_as_sponsor: int
    projects_as_cosponsor: int
    summary: str
    last_synced_at: str | None

    @classmethod
    def from_model(cls, m: LegislatorModel) -> LegislatorType:
        return cls(
            chamber=Chamber(m.chamber),
            slug=m.slug,
            display_name=m.display_name,
            surname=m.surname,
            given_name=m.given_name,
            district=m.district,
            bloc=m.bloc,
            term=m.term,
            profession=m.profession,
            birth_date=m.birth_date,
            email=m.email,
            photo_url=m.photo_url,
            profile_url=m.profile_url,
            total_projects=m.total_projects,
            projects_as_sponsor=m.projects_as_sponsor,
            projects_as_cosponsor=m.projects_as_cosponsor,
            summary=m.summary,
            last_synced_at=m.last_synced_at,
        )


@strawberry.type
class LegislatorConnection:
    """Paginated list of legislators."""

    items: list[LegislatorType]
    page_info: PageInfo


def paginate(items: list, offset: int, limit: int) -> tuple[list, PageInfo]:
    """Apply offset/limit pagination and build PageInfo.

    When *limit* is 0 the full list is returned (no cap).
    """
    offset = max(0, offset)
    total = len(items)
    if limit > 0:
        page = items[offset : offset + limit]
    else:
        page = items[offset:]
    has_next = limit > 0 and (offset + limit) < total
    has_prev = offset > 0
    return page, PageInfo(
        total_count=total,
        has_next_page=has_next,
        has_previous_page=has_prev,
    )


def sort_key(sort_by: LegislatorSortField) -> Callable[[LegislatorModel], object]:
    if sort_by == LegislatorSortField.TOTAL_PROJECTS:
        return lambda m: (m.total_projects, m.display_name.casefold())
    return lambda m: (m.surname or m.display_name).casefold()


def filter_legislators(
    items: list[LegislatorModel],
    district: str | None = None,
    bloc: str | None = None,
) -> list[LegislatorModel]:
    """Case-insensitive exact match on district and bloc."""
    if district:
        wanted = district.strip().casefold()
        items = [m for m in items if m.district.casefold() == wanted]
    if bloc:
        wanted = bloc.strip().casefold()
        items = [m for m in items if m.bloc.casefold() == wanted]
    return items
