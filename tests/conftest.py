from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from sample_pages import FakeWeb

from congreso_ar.models import DIPUTADOS, SENADORES, Legislator
from congreso_ar.store import LegislatorStore

# ── Fake web ──────────────────────────────────────────────────────────────────


@pytest.fixture
def web() -> Iterator[FakeWeb]:
    fake = FakeWeb()
    yield fake
    fake.close()


# ── Store ─────────────────────────────────────────────────────────────────────


@pytest.fixture
def store(tmp_path: Path) -> LegislatorStore:
    return LegislatorStore(tmp_path / "data")


# ── Legislator fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def sample_diputado() -> Legislator:
    return Legislator(
        chamber=DIPUTADOS,
        display_name="Ana María PÉREZ",
        surname="PÉREZ",
        given_name="Ana María",
        district="BUENOS AIRES",
        bloc="UNION POR LA PATRIA",
        term="10/12/2023 - 09/12/2027",
        photo_url="https://www.diputados.gov.ar/img/diputados/aperez_medium.jpg",
        profile_url="https://www.diputados.gov.ar/diputados/aperez/",
        slug="aperez",
        profession="Abogada",
        birth_date="05/03/1970",
        total_projects=15,
        projects_as_sponsor=10,
        projects_as_cosponsor=5,
    )


@pytest.fixture
def sample_diputado_b() -> Legislator:
    return Legislator(
        chamber=DIPUTADOS,
        display_name="Carlos GÓMEZ",
        surname="GÓMEZ",
        given_name="Carlos",
        district="MENDOZA",
        bloc="UCR",
        term="10/12/2021 - 09/12/2025",
        photo_url="https://www.diputados.gov.ar/img/diputados/cgomez_medium.jpg",
        profile_url="https://www.diputados.gov.ar/diputados/cgomez/",
        slug="cgomez",
        total_projects=40,
        projects_as_sponsor=25,
        projects_as_cosponsor=15,
    )


@pytest.fixture
def sample_senador() -> Legislator:
    return Legislator(
        chamber=SENADORES,
        display_name="LÓPEZ, Juan",
        district="CORDOBA",
        bloc="FRENTE CIVICO",
        term="10/12/2019 - 09/12/2025",
        photo_url="https://www.senado.gob.ar/bundles/senadores/fotos/123.gif",
        profile_url="https://www.senado.gob.ar/senadores/senador/123",
        slug="123",
        email="jlopez@senado.gob.ar",
        total_projects=87,
    )
