"""Short institutional summaries of a legislator.

Summaries come from Gemini (``google-genai`` async client) when an API key is
configured.  Model answers are accepted only when they are at least
``MIN_CHARS`` long after clamping to ``MAX_CHARS`` and do not open with a
theatrical formula; a rejected answer gets one expansion retry on the same
model before the next model is tried.

:func:`summarize` never fails: when no generator is configured or every model
fails, it returns a deterministic template built from the stored fields.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from google import genai
from google.genai import errors as genai_errors

from .config import GEMINI_MODELS
from .errors import SummaryUnavailable
from .models import DIPUTADOS, Legislator
from .normalize import normalize_space

LOGGER = logging.getLogger(__name__)

MIN_CHARS = 400
MAX_CHARS = 1000
SENTENCE_CLAMP_FLOOR = 250

SOURCE_GEMINI = "gemini"
SOURCE_FALLBACK = "fallback"

BLOC_ACRONYMS = frozenset({"UCR", "PRO", "PJ", "ARI", "MST", "FIT"})

_RE_FORBIDDEN_OPENING = re.compile(r"^(o[ií]d|escuchad|aqu[ií]|gentes de bien)\b", re.IGNORECASE)
_RE_WORD_START = re.compile(r"\b([a-záéíóúüñ])", re.IGNORECASE)
_RE_LETTERS = re.compile(r"[A-Za-zÁÉÍÓÚÜÑáéíóúüñ]+")

_LEGACY_PREFIXES = (
    "quien es el o la",
    "quién es la persona diputada o diputado",
    "quién es la persona senadora o senador",
)


class SummaryGenerator(Protocol):
    async def generate(self, record: Legislator) -> str: ...


# ── text helpers ─────────────────────────────────────────────────────────────


def title_case(value: str) -> str:
    return _RE_WORD_START.sub(lambda m: m.group(1).upper(), normalize_space(value).lower())


def format_bloc(value: str) -> str:
    """Title-case a bloc name, keeping party acronyms upper-case."""
    tokens = []
    for token in title_case(value).split(" "):
        plain = "".join(_RE_LETTERS.findall(token)).upper()
        if plain in BLOC_ACRONYMS:
            token = _RE_LETTERS.sub(plain, token, count=1)
        tokens.append(token)
    return " ".join(tokens)


def clamp_to_max_chars(text: str, max_chars: int = MAX_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    sliced = text[:max_chars]
    sentence_end = max(sliced.rfind("."), sliced.rfind("!"), sliced.rfind("?"))
    if sentence_end > SENTENCE_CLAMP_FLOOR:
        return sliced[: sentence_end + 1].strip()
    return sliced.rstrip() + "..."


def has_forbidden_opening(text: str) -> bool:
    return bool(_RE_FORBIDDEN_OPENING.match(text))


def is_legacy_summary(text: str) -> bool:
    """Summaries produced by an older template that should be regenerated."""
    normalized = normalize_space(text).lower()
    return normalized.startswith(_LEGACY_PREFIXES) or " argentin " in normalized


def role_label(record: Legislator) -> str:
    if record.chamber == DIPUTADOS:
        return "diputada o diputado nacional"
    return "senadora o senador nacional"


def fallback_summary(record: Legislator) -> str:
    term = normalize_space(record.term)
    text = (
        f"{normalize_space(record.display_name)} es {role_label(record)} por la provincia de "
        f"{title_case(record.district)} e integra el bloque {title_case(record.bloc)}"
        f"{f', con mandato {term}' if term else ''}. "
        "En su rol parlamentario participa en la elaboración, debate y seguimiento de "
        "iniciativas legislativas vinculadas a los intereses de su distrito y a la agenda "
        "de su espacio político."
    )
    if len(text) > MAX_CHARS:
        return text[: MAX_CHARS - 3].rstrip() + "..."
    return text


def build_prompt(record: Legislator) -> str:
    lines = [
        "Escribí un resumen en español rioplatense con tono institucional claro, "
        "sin frases teatrales ni arcaicas.",
        "Longitud objetivo entre 450 y 800 caracteres (mínimo absoluto 400, máximo 1000).",
        "No inventes datos. No uses listas ni encabezados.",
        'No empieces con fórmulas como "Oíd", "Escuchad", "Aquí", "Gentes de bien" o similares.',
        "No uses comillas.",
        "Debe ser un único párrafo.",
        "",
        "Datos:",
        f"- Cargo: {role_label(record)}",
        f"- Nombre: {normalize_space(record.display_name)}",
        f"- Provincia: {title_case(record.district)}",
        f"- Bloque: {format_bloc(record.bloc)}",
        f"- Mandato: {normalize_space(record.term)}",
    ]
    if record.profession:
        lines.append(f"- Profesión: {normalize_space(record.profession)}")
    if record.birth_date:
        lines.append(f"- Fecha de nacimiento: {normalize_space(record.birth_date)}")
    lines.append(f"- Total de proyectos: {record.total_projects}")
    return "\n".join(lines)


def build_expand_prompt(text: str) -> str:
    return "\n".join(
        [
            "Reescribí y expandí el siguiente texto para que tenga entre 450 y 800 caracteres.",
            "Mantené tono institucional claro y un único párrafo.",
            "No agregues datos que no estén en el texto original.",
            "",
            "Texto original:",
            text,
        ]
    )


def accept(text: str) -> str | None:
    """Clamped text when it passes the length and opening checks, else None."""
    cleaned = normalize_space(text)
    if not cleaned or has_forbidden_opening(cleaned):
        return None
    clamped = clamp_to_max_chars(cleaned)
    return clamped if len(clamped) >= MIN_CHARS else None


# ── Gemini ───────────────────────────────────────────────────────────────────


class GeminiSummarizer:
    def __init__(
        self,
        api_key: str = "",
        *,
        models: tuple[str, ...] = GEMINI_MODELS,
        client: genai.Client | None = None,
    ) -> None:
        self.models = models
        self.client = client if client is not None else genai.Client(api_key=api_key)

    async def _ask(self, model: str, prompt: str, *, temperature: float, max_tokens: int) -> str:
        response = await self.client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config={"temperature": temperature, "max_output_tokens": max_tokens},
        )
        return normalize_space(response.text or "")

    async def generate(self, record: Legislator) -> str:
        last_error = "Gemini returned no answer"
        for model in self.models:
            LOGGER.info("Requesting summary for %s from %s", record.slug, model)
            try:
                text = await self._ask(model, build_prompt(record), temperature=0.6, max_tokens=420)
            except genai_errors.APIError as exc:
                LOGGER.warning("Gemini %s failed: %s", model, exc)
                last_error = f"Gemini {model}: {exc}"
                continue

            if text:
                accepted = accept(text)
                if accepted:
                    return accepted
                LOGGER.info(
                    "Gemini %s answer rejected (length=%d); retrying with expansion",
                    model,
                    len(text),
                )
                try:
                    expanded = await self._ask(
                        model, build_expand_prompt(text), temperature=0.5, max_tokens=520
                    )
                except genai_errors.APIError as exc:
                    LOGGER.warning("Gemini %s expansion failed: %s", model, exc)
                else:
                    accepted = accept(expanded)
                    if accepted:
                        return accepted
            last_error = f"Gemini {model} returned an invalid summary"
        raise SummaryUnavailable(last_error)


async def summarize(record: Legislator, generator: SummaryGenerator | None) -> tuple[str, str]:
    """Return ``(text, source)`` where source is ``"gemini"`` or ``"fallback"``."""
    if generator is None:
        return fallback_summary(record), SOURCE_FALLBACK
    try:
        text = await generator.generate(record)
    except Exception:
        LOGGER.warning("Summary generation failed for %s; using template", record.slug, exc_info=True)
        return fallback_summary(record), SOURCE_FALLBACK
    if is_legacy_summary(text):
        return fallback_summary(record), SOURCE_FALLBACK
    return text, SOURCE_GEMINI
