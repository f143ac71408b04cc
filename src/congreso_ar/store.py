"""JSON document store for scraped legislators.

One file per chamber under ``DATA_DIR`` (``diputados.json``,
``senadores.json``), each a list of legislator documents.  Writes go through
a ``.json.tmp`` sibling and an atomic replace, so readers never observe a
half-written file.

Upserts are expressed as :class:`UpsertOperation` values (natural key plus the
scraped fields to set) built by :func:`build_upsert_operations`, then applied
in one batch by :meth:`LegislatorStore.apply`.  Fields the scraper does not
own (``summary``) survive an upsert; ``last_synced_at`` is stamped here.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path

from .config import DATA_DIR
from .models import CHAMBERS, DIPUTADOS, SENADORES, Legislator

LOGGER = logging.getLogger(__name__)

# Natural key per chamber.
UPSERT_KEYS: dict[str, str] = {DIPUTADOS: "slug", SENADORES: "profile_url"}

# Owned by the store or by the summary endpoint, never overwritten by a scrape.
_STORE_OWNED_FIELDS = frozenset({"summary", "last_synced_at"})
_LEGISLATOR_FIELDS = frozenset(f.name for f in fields(Legislator))


@dataclass(frozen=True)
class UpsertOperation:
    key: str
    value: str
    fields: dict


@dataclass(frozen=True)
class UpsertResult:
    created: int
    modified: int
    total: int
    synced_at: str | None = None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def build_upsert_operations(records: Iterable[Legislator], key: str) -> list[UpsertOperation]:
    """One upsert per record, keyed on ``key``; records without a key value are skipped."""
    operations: list[UpsertOperation] = []
    seen: set[str] = set()
    for record in records:
        data = record.to_dict()
        value = data.get(key)
        if not value:
            LOGGER.warning("Skipping %s record without %s: %s", record.chamber, key, record.display_name)
            continue
        if value in seen:
            continue
        seen.add(value)
        payload = {name: v for name, v in data.items() if name not in _STORE_OWNED_FIELDS}
        operations.append(UpsertOperation(key=key, value=value, fields=payload))
    return operations


def legislator_from_dict(doc: dict) -> Legislator:
    return Legislator(**{name: value for name, value in doc.items() if name in _LEGISLATOR_FIELDS})


class LegislatorStore:
    def __init__(self, data_dir: Path | str = DATA_DIR) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()

    def path_for(self, chamber: str) -> Path:
        if chamber not in CHAMBERS:
            raise ValueError(f"Unknown chamber: {chamber!r}")
        return self.data_dir / f"{chamber}.json"

    # ── reads ────────────────────────────────────────────────────────────

    def load_documents(self, chamber: str) -> list[dict]:
        path = self.path_for(chamber)
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def list(self, chamber: str) -> list[Legislator]:
        return [legislator_from_dict(doc) for doc in self.load_documents(chamber)]

    def get(self, chamber: str, slug: str) -> Legislator | None:
        for doc in self.load_documents(chamber):
            if doc.get("slug") == slug:
                return legislator_from_dict(doc)
        return None

    def counts(self) -> dict[str, int]:
        return {chamber: len(self.load_documents(chamber)) for chamber in CHAMBERS}

    # ── writes ───────────────────────────────────────────────────────────

    def _write(self, chamber: str, documents: list[dict]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(chamber)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(documents, f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)
        LOGGER.info("Saved %s (%d documents)", path, len(documents))

    def apply(self, chamber: str, operations: Iterable[UpsertOperation]) -> UpsertResult:
        """Apply a batch of upserts and report created/modified counts.

        ``modified`` counts existing documents whose scraped fields changed.
        Every touched document gets the same ``last_synced_at``.
        """
        operations = list(operations)
        synced_at = utc_now_iso()
        created = modified = 0
        with self._lock:
            documents = self.load_documents(chamber)
            keys = {op.key for op in operations}
            index: dict[tuple[str, str], dict] = {}
            for doc in documents:
                for key in keys:
                    if doc.get(key):
                        index.setdefault((key, doc[key]), doc)

            for op in operations:
                doc = index.get((op.key, op.value))
                if doc is None:
                    doc = {**op.fields, "summary": "", "last_synced_at": synced_at}
                    documents.append(doc)
                    index[(op.key, op.value)] = doc
                    created += 1
                    continue
                if any(doc.get(name) != value for name, value in op.fields.items()):
                    modified += 1
                doc.update(op.fields)
                doc["last_synced_at"] = synced_at

            self._write(chamber, documents)

        LOGGER.info(
            "Upserted %d %s: %d created, %d modified",
            len(operations),
            chamber,
            created,
            modified,
        )
        return UpsertResult(created=created, modified=modified, total=len(operations), synced_at=synced_at)

    def set_summary(self, chamber: str, slug: str, summary: str) -> bool:
        """Persist a generated summary; False when the legislator is unknown."""
        with self._lock:
            documents = self.load_documents(chamber)
            for doc in documents:
                if doc.get("slug") == slug:
                    doc["summary"] = summary
                    self._write(chamber, documents)
                    return True
        return False
