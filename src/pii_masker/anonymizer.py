"""Anonymizer — the main API.  Structured recognizers and model detections,
merged under one policy, rendered to tags, mapping sealed with AES-GCM.

Usage:
    from pii_masker import Anonymizer, StaticKeyProvider, generate_key

    keys = StaticKeyProvider(generate_key())
    anonymizer = Anonymizer({"reuse_ids_for_repeated_pii": True}, key_provider=keys)

    result = anonymizer.anonymize_sync("Email me at john@acme.com")
    print(result.anonymized_text)     # 'Email me at <PII type="EMAIL" id="1"/>'

    translated = 'Schreib mir an <PII type="EMAIL" id="1"/>'
    print(anonymizer.rehydrate(translated, result.pii_map))
    # 'Schreib mir an john@acme.com'
"""

from __future__ import annotations
import asyncio
import logging
import time
from collections import Counter
from typing import Any, Mapping, Sequence

from .config import DEFAULT_INFERENCE_TIMEOUT, load_settings
from .crypto import KeyProvider, PIIMap, build_pii_map, decrypt_map, encrypt_map
from .exceptions import ConfigurationError
from .leak import scan_for_leaks
from .ner import InferenceProvider, normalize_predictions
from .patterns import Recognizer, default_registry, to_detections
from .policy import Policy, merge_policy
from .rehydrate import rehydrate
from .renderer import assign_ids, render
from .resolver import resolve
from .semantic import SemanticLookup, enrich_entities
from .types import AnonymizationResult, AnonymizationStats, Detection, EncryptedMap

logger = logging.getLogger(__name__)


class Anonymizer:
    """Detect, tag and seal PII in plain text.

    One instance holds a policy, a recognizer registry and references to the
    external collaborators.  No per-document state survives a call, so
    concurrent ``anonymize`` calls on one instance never share id counters.
    """

    def __init__(
        self,
        policy: Policy | Mapping[str, Any] | None = None,
        *,
        key_provider: KeyProvider,
        inference_provider: InferenceProvider | None = None,
        semantic_lookup: SemanticLookup | None = None,
        recognizers: Sequence[Recognizer] = (),
        inference_timeout: float = DEFAULT_INFERENCE_TIMEOUT,
    ) -> None:
        if key_provider is None:
            raise ConfigurationError("key_provider is required")
        if inference_timeout <= 0:
            raise ConfigurationError("inference_timeout must be positive")
        self.policy = policy if isinstance(policy, Policy) else merge_policy(policy)
        self.key_provider = key_provider
        self.inference_provider = inference_provider
        self.semantic_lookup = semantic_lookup
        self.inference_timeout = inference_timeout
        self.registry = default_registry(self.policy, recognizers)

    @classmethod
    def from_config(cls, data: Mapping[str, Any], **kwargs: Any) -> Anonymizer:
        """Build from a config dict (see ``pii_masker.config``)."""
        policy, runtime = load_settings(data)
        kwargs.setdefault("inference_timeout", runtime["inference_timeout"])
        return cls(policy, **kwargs)

    # ------------------------------------------------------------------
    # Provider lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        if self.inference_provider is not None:
            self.inference_provider.initialize()

    def dispose(self) -> None:
        if self.inference_provider is not None:
            self.inference_provider.dispose()

    async def __aenter__(self) -> Anonymizer:
        await asyncio.to_thread(self.initialize)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    async def anonymize(self, text: str) -> AnonymizationResult:
        """Replace PII in *text* with placeholder tags.

        Pattern recognizers and the inference provider run concurrently;
        the merge waits for both.  If inference fails, times out or is
        cancelled the result carries pattern detections only and
        ``stats.ner_degraded`` is set.
        """
        started = time.perf_counter()
        stats = AnonymizationStats(model_version=self._model_version())

        (structured, failed), soft = await asyncio.gather(
            self._scan_structured(text),
            self._scan_soft(text, stats),
        )
        stats.failed_recognizers = failed

        resolved = resolve([*structured, *soft], self.policy)
        entities = assign_ids(resolved, text, reuse=self.policy.reuse_ids_for_repeated_pii)
        if self.policy.enable_semantic_masking and self.semantic_lookup is not None:
            entities = enrich_entities(entities, text, self.semantic_lookup)

        anonymized = render(text, entities)

        pii_map = build_pii_map(entities, text)
        if self.policy.enable_leak_scan:
            stats.leak_scan_passed = not scan_for_leaks(anonymized, pii_map)
        sealed = encrypt_map(pii_map, self.key_provider)
        del pii_map

        stats.counts_by_type = dict(Counter(e.type.value for e in entities))
        stats.total_entities = len(entities)
        stats.processing_time_ms = round((time.perf_counter() - started) * 1000, 3)

        logger.info("Anonymized: %d PII entities replaced", len(entities))
        return AnonymizationResult(
            anonymized_text=anonymized,
            entities=entities,
            pii_map=sealed,
            stats=stats,
        )

    def anonymize_sync(self, text: str) -> AnonymizationResult:
        """Blocking wrapper around ``anonymize`` for code without an event loop."""
        return asyncio.run(self.anonymize(text))

    def decrypt_map(self, encrypted: EncryptedMap | Mapping[str, str]) -> PIIMap:
        return decrypt_map(encrypted, self.key_provider)

    def rehydrate(self, text: str, encrypted: EncryptedMap | Mapping[str, str]) -> str:
        """Decrypt *encrypted* and restore original values into *text*."""
        return rehydrate(text, self.decrypt_map(encrypted))

    # ------------------------------------------------------------------
    # Detection sources
    # ------------------------------------------------------------------

    async def _scan_structured(self, text: str) -> tuple[list[Detection], list[str]]:
        recognizers = list(self.registry)
        results = await asyncio.gather(
            *(asyncio.to_thread(r.match, text) for r in recognizers),
            return_exceptions=True,
        )

        detections: list[Detection] = []
        failed: list[str] = []
        for recognizer, found in zip(recognizers, results):
            if isinstance(found, BaseException):
                if not isinstance(found, Exception):
                    raise found
                logger.warning("Recognizer %r failed: %s", recognizer.name, found)
                failed.append(recognizer.name)
                continue
            detections.extend(to_detections(found, text))
        return detections, failed

    async def _scan_soft(self, text: str, stats: AnonymizationStats) -> list[Detection]:
        if self.inference_provider is None:
            return []
        if not self.policy.ner_enabled_types & self.policy.enabled_types:
            return []

        try:
            predictions = await asyncio.wait_for(
                self.inference_provider.predict(text),
                timeout=self.inference_timeout,
            )
            return normalize_predictions(predictions, text)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.warning("Inference was cancelled; continuing with pattern detections only")
        except asyncio.TimeoutError:
            logger.warning(
                "Inference timed out after %.1fs; continuing with pattern detections only",
                self.inference_timeout,
            )
        except Exception as exc:
            logger.warning("Inference failed (%s); continuing with pattern detections only", exc)

        stats.ner_degraded = True
        return []

    def _model_version(self) -> str | None:
        if self.inference_provider is None:
            return None
        version = getattr(self.inference_provider, "model_version", None)
        return str(version) if version is not None else None
