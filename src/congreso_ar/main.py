from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field

import strawberry
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from strawberry.extensions import QueryDepthLimiter
from strawberry.fastapi import GraphQLRouter

from .config import (
    API_KEY,
    AUTH_WINDOW_SECONDS,
    CORS_ORIGINS,
    DATA_DIR,
    GEMINI_API_KEY,
    MAX_AUTH_FAILURES,
)
from .errors import UpstreamUnavailable
from .etl import open_scraper, sync_chamber
from .models import CHAMBERS, DIPUTADOS, SENADORES
from .progress import ProgressChannel
from .schema import (
    Chamber,
    LegislatorConnection,
    LegislatorSortField,
    LegislatorType,
    SortOrder,
    filter_legislators,
    paginate,
    sort_key,
)
from .scrapers.base import ChamberScraper
from .security import AttemptLimiter, client_fingerprint
from .store import LegislatorStore
from .summary import SOURCE_GEMINI, GeminiSummarizer, SummaryGenerator, is_legacy_summary, summarize

# ── Configure logging ────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(message)s",
    stream=sys.stderr,
    force=True,
)
LOGGER = logging.getLogger(__name__)

ScraperFactory = Callable[[str], AbstractAsyncContextManager[ChamberScraper]]


# ── Application state ────────────────────────────────────────────────────────


@dataclass
class AppState:
    store: LegislatorStore
    attempts: AttemptLimiter
    api_key: str = ""
    open_scraper: ScraperFactory = field(default=open_scraper)
    summarizer: SummaryGenerator | None = None


def build_state() -> AppState:
    return AppState(
        store=LegislatorStore(DATA_DIR),
        attempts=AttemptLimiter(max_failures=MAX_AUTH_FAILURES, window_seconds=AUTH_WINDOW_SECONDS),
        api_key=API_KEY,
        summarizer=GeminiSummarizer(GEMINI_API_KEY) if GEMINI_API_KEY else None,
    )


state = build_state()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    counts = state.store.counts()
    LOGGER.info(
        "Serving %d diputados and %d senadores from %s",
        counts[DIPUTADOS],
        counts[SENADORES],
        state.store.data_dir,
    )
    if state.summarizer is None:
        LOGGER.info("GEMINI_API_KEY not set; summaries use the template fallback.")
    yield


# ── GraphQL ──────────────────────────────────────────────────────────────────


def _legislator_page(
    chamber: str,
    sort_by: LegislatorSortField | None,
    sort_order: SortOrder | None,
    district: str | None,
    bloc: str | None,
    offset: int,
    limit: int,
) -> LegislatorConnection:
    result = filter_legislators(state.store.list(chamber), district=district, bloc=bloc)
    if sort_by is not None:
        result.sort(key=sort_key(sort_by), reverse=sort_order == SortOrder.DESC)
    page, page_info = paginate(result, offset, limit)
    return LegislatorConnection(
        items=[LegislatorType.from_model(m) for m in page],
        page_info=page_info,
    )


@strawberry.type
class Query:
    @strawberry.field(description="Paginated list of deputies with optional sorting and filters.")
    def diputados(
        self,
        sort_by: LegislatorSortField | None = None,
        sort_order: SortOrder | None = None,
        district: str | None = None,
        bloc: str | None = None,
        offset: int = 0,
        limit: int = 0,
    ) -> LegislatorConnection:
        return _legislator_page(DIPUTADOS, sort_by, sort_order, district, bloc, offset, limit)

    @strawberry.field(description="Paginated list of senators with optional sorting and filters.")
    def senadores(
        self,
        sort_by: LegislatorSortField | None = None,
        sort_order: SortOrder | None = None,
        district: str | None = None,
        bloc: str | None = None,
        offset: int = 0,
        limit: int = 0,
    ) -> LegislatorConnection:
        return _legislator_page(SENADORES, sort_by, sort_order, district, bloc, offset, limit)

    @strawberry.field(description="Look up a single legislator by chamber and slug.")
    def legislator(self, chamber: Chamber, slug: str) -> LegislatorType | None:
        model = state.store.get(chamber.value, slug)
        return LegislatorType.from_model(model) if model is not None else None

    @strawberry.field(description="Legislators ranked by total projects, most active first.")
    def ranking_proyectos(self, chamber: Chamber | None = None, limit: int = 50) -> list[LegislatorType]:
        chambers = (chamber.value,) if chamber is not None else CHAMBERS
        everyone = [m for c in chambers for m in state.store.list(c)]
        everyone.sort(key=lambda m: (-m.total_projects, m.display_name.casefold()))
        if limit > 0:
            everyone = everyone[:limit]
        return [LegislatorType.from_model(m) for m in everyone]


schema = strawberry.Schema(
    query=Query,
    extensions=[QueryDepthLimiter(max_depth=10)],
)
graphql_app = GraphQLRouter(schema)

app = FastAPI(title="Congreso AR", lifespan=lifespan)

# ── CORS middleware ──────────────────────────────────────────────────────────
_cors_origins = [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API key authentication middleware ────────────────────────────────────────
@app.middleware("http")
async def _api_key_middleware(request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
    """Require ``X-API-Key`` header when an API key is configured.

    Skips auth for the health endpoint, the docs and OPTIONS (CORS preflight).
    Clients that fail too often inside the window are answered 429 until
    their failures expire; a valid key clears the client's counter.
    """
    if state.api_key:
        exempt = {"/health", "/docs", "/openapi.json", "/redoc"}
        if request.url.path not in exempt and request.method != "OPTIONS":
            client_ip = request.headers.get("X-Forwarded-For") or (
                request.client.host if request.client else None
            )
            key = client_fingerprint(client_ip, request.headers.get("User-Agent"))
            if state.attempts.is_locked(key):
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Too many failed attempts; try again later"},
                )
            provided = request.headers.get("X-API-Key", "")
            if provided != state.api_key:
                state.attempts.record_failure(key)
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Invalid or missing API key"},
                )
            state.attempts.reset(key)
    return await call_next(request)


# ── Request logging middleware ───────────────────────────────────────────────
@app.middleware("http")
async def _request_logging_middleware(request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
    """Log every request with method, path, and response time."""
    t0 = time.perf_counter()
    response: Response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    LOGGER.info(
        "%s %s %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# ── Health endpoint ──────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict:
    """Service health check with data counts."""
    counts = state.store.counts()
    return {
        "status": "ok",
        "ready": any(counts.values()),
        "diputados": counts[DIPUTADOS],
        "senadores": counts[SENADORES],
    }


app.include_router(graphql_app, prefix="/graphql")


# ── Admin: sync ──────────────────────────────────────────────────────────────


def _unknown_chamber(chamber: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"ok": False, "message": f"Unknown chamber: {chamber}"},
    )


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


@app.post("/admin/sync/{chamber}")
async def admin_sync(chamber: str) -> JSONResponse:
    """Scrape one chamber and upsert it; 502 when the roster is unavailable."""
    if chamber not in CHAMBERS:
        return _unknown_chamber(chamber)
    try:
        async with state.open_scraper(chamber) as scraper:
            report = await sync_chamber(scraper, state.store)
    except UpstreamUnavailable as exc:
        LOGGER.error("Sync of %s failed: %s", chamber, exc)
        return JSONResponse(status_code=502, content={"ok": False, "message": str(exc)})
    return JSONResponse(content={"ok": True, **report.to_dict()})


@app.get("/admin/sync/{chamber}/stream", response_model=None)
async def admin_sync_stream(chamber: str) -> StreamingResponse | JSONResponse:
    """Same as :func:`admin_sync`, streaming progress as server-sent events."""
    if chamber not in CHAMBERS:
        return _unknown_chamber(chamber)

    async def _events() -> AsyncIterator[str]:
        yield _sse("start", {"chamber": chamber})
        channel = ProgressChannel()
        try:
            async with state.open_scraper(chamber) as scraper:
                work = sync_chamber(scraper, state.store, on_progress=channel.publish)
                async for event in channel.run(work):
                    yield _sse("progress", event.to_dict())
        except UpstreamUnavailable as exc:
            LOGGER.error("Streaming sync of %s failed: %s", chamber, exc)
            yield _sse("error", {"ok": False, "message": str(exc)})
            return
        yield _sse("done", {"ok": True, **channel.result.to_dict()})

    return StreamingResponse(
        _events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache, no-transform", "X-Accel-Buffering": "no"},
    )


# ── Admin: summaries ─────────────────────────────────────────────────────────


@app.post("/admin/summary/{chamber}/{slug}")
async def admin_summary(chamber: str, slug: str) -> JSONResponse:
    """Return the stored summary, generating (and persisting) one when missing.

    Stored summaries from the legacy template are regenerated; if that fails
    the legacy text is returned as-is.  Template fallbacks are never stored.
    """
    if chamber not in CHAMBERS:
        return _unknown_chamber(chamber)
    record = state.store.get(chamber, slug)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={"ok": False, "message": f"Legislator not found: {slug}"},
        )

    existing = record.summary.strip()
    if existing and not is_legacy_summary(existing):
        return JSONResponse(content={"ok": True, "summary": existing, "cached": True, "source": "cache"})

    text, source = await summarize(record, state.summarizer)
    if source == SOURCE_GEMINI:
        state.store.set_summary(chamber, slug, text)
        return JSONResponse(
            content={"ok": True, "summary": text, "cached": False, "source": source, "persisted": True}
        )
    if existing:
        return JSONResponse(content={"ok": True, "summary": existing, "cached": True, "source": "legacy"})
    return JSONResponse(
        content={"ok": True, "summary": text, "cached": False, "source": source, "persisted": False}
    )
