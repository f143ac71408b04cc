from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from congreso_ar.errors import SummaryUnavailable
from congreso_ar.models import Legislator
from congreso_ar.summary import (
    MAX_CHARS,
    MIN_CHARS,
    GeminiSummarizer,
    accept,
    build_prompt,
    clamp_to_max_chars,
    fallback_summary,
    format_bloc,
    has_forbidden_opening,
    is_legacy_summary,
    summarize,
    title_case,
)

GOOD_TEXT = (
    "Ana María Pérez es diputada nacional por la provincia de Buenos Aires. "
    + "Integra el bloque Unión por la Patria y trabaja en comisiones de educación. " * 6
).strip()


class FakeModels:
    """Stands in for ``client.aio.models``; answers are queued per model."""

    def __init__(self, answers: dict[str, list[str]]) -> None:
        self.answers = answers
        self.calls: list[tuple[str, str]] = []

    async def generate_content(self, *, model: str, contents: str, config: dict) -> SimpleNamespace:
        self.calls.append((model, contents))
        return SimpleNamespace(text=self.answers[model].pop(0))


def _summarizer(answers: dict[str, list[str]]) -> tuple[GeminiSummarizer, FakeModels]:
    models = FakeModels(answers)
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return GeminiSummarizer(models=tuple(answers), client=client), models


class TestTextHelpers:
    def test_title_case(self) -> None:
        assert title_case("  CIUDAD AUTÓNOMA DE  BUENOS AIRES ") == "Ciudad Autónoma De Buenos Aires"

    def test_format_bloc_keeps_acronyms(self) -> None:
        assert format_bloc("UCR - UNION CIVICA RADICAL") == "UCR - Union Civica Radical"
        assert format_bloc("(PRO) propuesta republicana") == "(PRO) Propuesta Republicana"

    def test_clamp_at_sentence_end(self) -> None:
        text = ("Una oración completa de prueba. " * 40).strip()
        clamped = clamp_to_max_chars(text)
        assert len(clamped) <= MAX_CHARS
        assert clamped.endswith(".")

    def test_clamp_without_sentence_end(self) -> None:
        clamped = clamp_to_max_chars("x" * 1200)
        assert clamped == "x" * MAX_CHARS + "..."

    def test_short_text_untouched(self) -> None:
        assert clamp_to_max_chars("Breve.") == "Breve."

    @pytest.mark.parametrize("opening", ["Oíd mortales", "Escuchad", "Aquí presentamos", "Gentes de bien"])
    def test_forbidden_openings(self, opening: str) -> None:
        assert has_forbidden_opening(f"{opening}, el legislador...")

    def test_regular_opening_allowed(self) -> None:
        assert not has_forbidden_opening("Ana María Pérez es diputada")

    def test_accept(self) -> None:
        assert accept(GOOD_TEXT) == GOOD_TEXT
        assert accept("Demasiado corto.") is None
        assert accept("Oíd " + GOOD_TEXT) is None

    def test_legacy_detection(self) -> None:
        assert is_legacy_summary("Quien es el o la diputado...")
        assert is_legacy_summary("Es un político argentin de larga trayectoria")
        assert not is_legacy_summary(GOOD_TEXT)


class TestFallbackSummary:
    def test_diputado_template(self, sample_diputado: Legislator) -> None:
        text = fallback_summary(sample_diputado)
        assert text.startswith(
            "Ana María PÉREZ es diputada o diputado nacional por la provincia de Buenos Aires "
            "e integra el bloque Union Por La Patria, con mandato 10/12/2023 - 09/12/2027."
        )
        assert text.endswith("agenda de su espacio político.")

    def test_senador_template(self, sample_senador: Legislator) -> None:
        text = fallback_summary(sample_senador)
        assert "senadora o senador nacional por la provincia de Cordoba" in text

    def test_without_term(self, sample_senador: Legislator) -> None:
        sample_senador.term = ""
        assert "con mandato" not in fallback_summary(sample_senador)

    def test_prompt_includes_known_fields(self, sample_diputado: Legislator) -> None:
        prompt = build_prompt(sample_diputado)
        assert "- Profesión: Abogada" in prompt
        assert "- Total de proyectos: 15" in prompt
        assert "- Bloque: Union Por La Patria" in prompt


class TestGeminiSummarizer:
    def test_first_good_answer_wins(self, sample_diputado: Legislator) -> None:
        summarizer, models = _summarizer({"m1": [GOOD_TEXT], "m2": [GOOD_TEXT]})
        assert asyncio.run(summarizer.generate(sample_diputado)) == GOOD_TEXT
        assert [m for m, _ in models.calls] == ["m1"]

    def test_expansion_retry(self, sample_diputado: Legislator) -> None:
        summarizer, models = _summarizer({"m1": ["Corto.", GOOD_TEXT]})
        assert asyncio.run(summarizer.generate(sample_diputado)) == GOOD_TEXT
        assert "Texto original:\nCorto." in models.calls[1][1]

    def test_next_model_after_rejection(self, sample_diputado: Legislator) -> None:
        summarizer, models = _summarizer({"m1": ["Corto.", "Aún corto."], "m2": [GOOD_TEXT]})
        assert asyncio.run(summarizer.generate(sample_diputado)) == GOOD_TEXT
        assert [m for m, _ in models.calls] == ["m1", "m1", "m2"]

    def test_all_rejected_raises(self, sample_diputado: Legislator) -> None:
        summarizer, _ = _summarizer({"m1": ["", ""], "m2": ["Oíd " + GOOD_TEXT, "Oíd " + GOOD_TEXT]})
        with pytest.raises(SummaryUnavailable):
            asyncio.run(summarizer.generate(sample_diputado))

    def test_answers_are_clamped(self, sample_diputado: Legislator) -> None:
        long_text = (GOOD_TEXT + " ") * 3
        summarizer, _ = _summarizer({"m1": [long_text]})
        result = asyncio.run(summarizer.generate(sample_diputado))
        assert MIN_CHARS <= len(result) <= MAX_CHARS


class TestSummarize:
    def test_no_generator_uses_template(self, sample_diputado: Legislator) -> None:
        text, source = asyncio.run(summarize(sample_diputado, None))
        assert source == "fallback"
        assert text == fallback_summary(sample_diputado)

    def test_generator_failure_uses_template(self, sample_diputado: Legislator) -> None:
        class Broken:
            async def generate(self, record: Legislator) -> str:
                raise RuntimeError("quota exceeded")

        text, source = asyncio.run(summarize(sample_diputado, Broken()))
        assert source == "fallback"
        assert text == fallback_summary(sample_diputado)

    def test_generator_success(self, sample_diputado: Legislator) -> None:
        summarizer, _ = _summarizer({"m1": [GOOD_TEXT]})
        assert asyncio.run(summarize(sample_diputado, summarizer)) == (GOOD_TEXT, "gemini")
