"""Centralized configuration for the congreso-ar application.

All settings live here so they can be overridden by environment variables or a
``.env`` file without touching source code.

**Profile system:** Set ``CONGRESO_PROFILE=dev`` (default) or
``CONGRESO_PROFILE=prod`` to get sensible defaults for each environment.  Any
individual ``CONGRESO_*`` var still overrides the profile value.

Chamber base URLs and host allow-lists are *not* configurable here; they live
next to each chamber scraper so that widening them is a code change.

Usage::

    from congreso_ar.config import DATA_DIR, REQUEST_TIMEOUT
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from current working directory (project root when running uvicorn / scripts)
load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile: one knob for the whole environment ──────────────────────────────

PROFILE: str = os.getenv("CONGRESO_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "CONGRESO_CORS_ORIGINS": "*",
        "CONGRESO_RETRY_BACKOFF": "0.25",
        "CONGRESO_DIPUTADOS_CONCURRENCY": "8",
        "CONGRESO_SENADORES_CONCURRENCY": "5",
    },
    "prod": {
        "CONGRESO_CORS_ORIGINS": "",  # empty → must be explicitly set
        "CONGRESO_RETRY_BACKOFF": "0.5",
        "CONGRESO_DIPUTADOS_CONCURRENCY": "6",
        "CONGRESO_SENADORES_CONCURRENCY": "4",
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown CONGRESO_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


# ── Directories ──────────────────────────────────────────────────────────────
DATA_DIR: Path = Path(_env("CONGRESO_DATA_DIR", "data"))

# ── HTTP fetching ────────────────────────────────────────────────────────────
REQUEST_TIMEOUT: float = float(_env("CONGRESO_REQUEST_TIMEOUT", "15"))
MAX_RETRIES: int = int(_env("CONGRESO_MAX_RETRIES", "2"))
RETRY_BACKOFF: float = float(_env("CONGRESO_RETRY_BACKOFF", "0.5"))

# ── Fan-out caps (in-flight legislators per chamber) ─────────────────────────
DIPUTADOS_CONCURRENCY: int = int(_env("CONGRESO_DIPUTADOS_CONCURRENCY", "8"))
SENADORES_CONCURRENCY: int = int(_env("CONGRESO_SENADORES_CONCURRENCY", "5"))

# ── Security / network ──────────────────────────────────────────────────────
CORS_ORIGINS: str = _env("CONGRESO_CORS_ORIGINS").strip()
API_KEY: str = _env("CONGRESO_API_KEY").strip()
MAX_AUTH_FAILURES: int = int(_env("CONGRESO_MAX_AUTH_FAILURES", "5"))
AUTH_WINDOW_SECONDS: float = float(_env("CONGRESO_AUTH_WINDOW_SECONDS", "900"))

# ── Summary generation ──────────────────────────────────────────────────────
GEMINI_API_KEY: str = _env("GEMINI_API_KEY").strip()
GEMINI_MODELS: tuple[str, ...] = tuple(
    m.strip()
    for m in _env("CONGRESO_GEMINI_MODELS", "gemini-2.5-flash,gemini-flash-latest").split(",")
    if m.strip()
)

# ── Production guard: warn if CORS is wide-open or API_KEY is missing ────────
if PROFILE == "prod":
    if CORS_ORIGINS in ("*", ""):
        LOGGER.warning(
            "CONGRESO_PROFILE=prod but CONGRESO_CORS_ORIGINS=%r. "
            "Set it to your front-end origin(s) for security.",
            CORS_ORIGINS,
        )
    if not API_KEY:
        LOGGER.warning(
            "CONGRESO_PROFILE=prod but CONGRESO_API_KEY is empty. Admin endpoints are unprotected."
        )
