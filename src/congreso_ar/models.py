from __future__ import annotations

from dataclasses import asdict, dataclass, field

DIPUTADOS = "diputados"
SENADORES = "senadores"
CHAMBERS: tuple[str, ...] = (DIPUTADOS, SENADORES)


@dataclass
class ProfileDetails:
    profession: str = ""
    birth_date: str = ""
    photo_url: str = ""
    email: str = ""


@dataclass
class ProjectCounts:
    total: int = 0
    # Per-role split; only the lower chamber publishes it.
    sponsor: int | None = None
    cosponsor: int | None = None

    @classmethod
    def by_role(cls, sponsor: int, cosponsor: int) -> ProjectCounts:
        return cls(total=sponsor + cosponsor, sponsor=sponsor, cosponsor=cosponsor)


@dataclass
class Legislator:
    chamber: str  # "diputados" or "senadores"
    display_name: str
    district: str
    bloc: str
    term: str  # e.g. "10/12/2021 - 09/12/2025"
    photo_url: str
    profile_url: str  # official profile page -- natural key
    slug: str  # last path segment of profile_url
    surname: str = ""  # lower chamber only
    given_name: str = ""  # lower chamber only
    profession: str = ""
    birth_date: str = ""  # DD/MM/YYYY when parseable, raw text otherwise
    email: str = ""
    total_projects: int = 0
    projects_as_sponsor: int = 0
    projects_as_cosponsor: int = 0
    summary: str = ""
    last_synced_at: str | None = None  # owned by the store

    def apply_details(self, details: ProfileDetails) -> None:
        self.profession = details.profession
        self.birth_date = details.birth_date
        if details.email:
            self.email = details.email

    def apply_counts(self, counts: ProjectCounts) -> None:
        self.projects_as_sponsor = max(0, counts.sponsor or 0)
        self.projects_as_cosponsor = max(0, counts.cosponsor or 0)
        self.total_projects = max(0, counts.total)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProgressEvent:
    """One lifecycle event reported while a chamber is being scraped.

    ``legislator`` holds the chamber-specific identity payload and is rendered
    under ``diputado`` or ``senador`` by :meth:`to_dict`.
    """

    type: str
    total: int
    index: int | None = None
    chamber: str = DIPUTADOS
    legislator: dict[str, str] = field(default_factory=dict)
    total_projects: int | None = None
    profession: str | None = None
    birth_date: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type.endswith("_done") or self.type.endswith("_error")

    def to_dict(self) -> dict:
        data: dict = {"type": self.type, "total": self.total}
        if self.index is not None:
            data["index"] = self.index
        if self.legislator:
            key = "diputado" if self.chamber == DIPUTADOS else "senador"
            data[key] = dict(self.legislator)
        for name in ("total_projects", "profession", "birth_date", "error"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data
