"""Optional person-name layer backed by Presidio NER.

The key/value extractor only finds names behind a "name"-like key.  With
``use_ner`` enabled, free-text person names are found by Presidio's spaCy
pipeline as well.  Off by default: loading the model is slow and name
detection in prose is best-effort.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from .vault import Vault

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

# Engine is built on first use; loading the spaCy model is slow
_engine: AnalyzerEngine | None = None
_engine_lang: str = ""


def _get_engine(language: str = "en") -> AnalyzerEngine:
    """Lazy-init the Presidio analyzer engine."""
    global _engine, _engine_lang
    if _engine is None or _engine_lang != language:
        from presidio_analyzer import AnalyzerEngine
        from presidio_analyzer.nlp_engine import NlpEngineProvider

        provider = NlpEngineProvider(nlp_configuration={
            "nlp_engine_name": "spacy",
            "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
        })
        nlp_engine = provider.create_engine()
        _engine = AnalyzerEngine(nlp_engine=nlp_engine, supported_languages=[language])
        _engine_lang = language
    return _engine


def scan_person_names(
    text: str,
    *,
    language: str = "en",
    score_threshold: float = 0.35,
) -> list[tuple[int, int]]:
    """Return non-overlapping (start, end) spans of PERSON entities, sorted."""
    results = _get_engine(language).analyze(
        text=text,
        language=language,
        entities=["PERSON"],
        score_threshold=score_threshold,
    )
    ranked = sorted(results, key=lambda r: (-r.score, -(r.end - r.start)))
    taken: list[tuple[int, int]] = []
    for r in ranked:
        if not any(r.start < e and r.end > s for s, e in taken):
            taken.append((r.start, r.end))
    return sorted(taken)


def anonymize_person_names(
    text: str,
    vault: Vault,
    *,
    language: str = "en",
    score_threshold: float = 0.35,
) -> str:
    """Replace PERSON spans with placeholders (right-to-left to keep offsets)."""
    result = text
    spans = scan_person_names(text, language=language, score_threshold=score_threshold)
    for start, end in reversed(spans):
        original = text[start:end]
        if not original.strip() or vault.contains_placeholder(original):
            continue
        result = result[:start] + vault.get_or_create(original, "PERSON_%s") + result[end:]
    return result
