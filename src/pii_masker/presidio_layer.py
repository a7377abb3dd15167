"""Presidio-backed inference provider for unstructured PII.

Catches names, organizations, locations and dates that patterns can't
reliably detect.  Uses spaCy under the hood via presidio-analyzer, which is
an optional dependency (``pip install pii-masker[presidio]``).

Usage:
    provider = PresidioInferenceProvider(language="en")
    async with Anonymizer(key_provider=keys, inference_provider=provider) as a:
        result = await a.anonymize(text)
"""

from __future__ import annotations
import asyncio
import logging
from typing import TYPE_CHECKING

from .ner import TokenPrediction

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

logger = logging.getLogger(__name__)

# Presidio entity → label understood by the normalizer's table
PRESIDIO_LABELS: dict[str, str] = {
    "PERSON": "PERSON",
    "ORGANIZATION": "ORG",
    "LOCATION": "LOCATION",
    "NRP": "MISC",
    "DATE_TIME": "DATE",
}


def _build_engine(language: str, model_name: str) -> AnalyzerEngine:
    from presidio_analyzer import AnalyzerEngine
    from presidio_analyzer.nlp_engine import NlpEngineProvider

    provider = NlpEngineProvider(nlp_configuration={
        "nlp_engine_name": "spacy",
        "models": [{"lang_code": language, "model_name": model_name}],
    })
    nlp_engine = provider.create_engine()
    return AnalyzerEngine(nlp_engine=nlp_engine, supported_languages=[language])


class PresidioInferenceProvider:
    """Adapts a Presidio ``AnalyzerEngine`` to the inference provider contract.

    The engine is built in ``initialize()`` (or passed in ready-made) and
    released in ``dispose()``; nothing is cached at module level.
    """

    def __init__(
        self,
        *,
        language: str = "en",
        model_name: str | None = None,
        entities: list[str] | None = None,
        engine: AnalyzerEngine | None = None,
    ) -> None:
        self.language = language
        self.model_name = model_name or f"{language}_core_web_sm"
        self.entities = entities or list(PRESIDIO_LABELS)
        self._engine = engine

    @property
    def model_version(self) -> str:
        return f"presidio/{self.model_name}"

    def initialize(self) -> None:
        if self._engine is None:
            logger.info("Loading Presidio analyzer (%s)", self.model_name)
            self._engine = _build_engine(self.language, self.model_name)

    def dispose(self) -> None:
        self._engine = None

    def analyze(self, text: str) -> list[TokenPrediction]:
        """Synchronous Presidio pass; spans come back already whole."""
        self.initialize()
        results = self._engine.analyze(
            text=text,
            language=self.language,
            entities=self.entities,
            # Thresholds are the policy's job
            score_threshold=0.0,
        )
        predictions: list[TokenPrediction] = []
        for r in results:
            label = PRESIDIO_LABELS.get(r.entity_type)
            if label is None:
                continue
            predictions.append(TokenPrediction(label=label, start=r.start, end=r.end, score=r.score))
        return sorted(predictions, key=lambda p: p.start)

    async def predict(self, text: str) -> list[TokenPrediction]:
        return await asyncio.to_thread(self.analyze, text)
