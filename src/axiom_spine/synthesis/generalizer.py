"""Signal generalization.

Rewrites a signal's concrete wording as an actor-agnostic principle
before clustering, so "I always double-check my sources" and "checking
sources twice matters to the team" land in the same cluster::

    signal.text ──prompt──▶ generate ──validate──▶ generalized text
                                          │
                                          └─ invalid / transient failure
                                             → original text (used_fallback)

A generalization is valid when it is non-empty, at most
``MAX_OUTPUT_LENGTH`` characters, free of first/second-person pronouns,
and not a runaway expansion of the input. Fatal classifier errors
propagate.

Results are cached per generalizer, keyed on signal id, a hash of the
text, ``PROMPT_VERSION``, and the model name. Bump ``PROMPT_VERSION``
whenever the prompt or the validation rules change.
"""

from __future__ import annotations

import hashlib
import re
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass

from axiom_spine.core.errors import is_transient
from axiom_spine.core.logging import get_logger
from axiom_spine.core.models import GeneralizationProvenance, Signal
from axiom_spine.execution.async_batch import gather_in_batches
from axiom_spine.execution.retry import RetryStrategy
from axiom_spine.llm.calls import DEFAULT_CALL_TIMEOUT, default_retry, generate_text
from axiom_spine.llm.protocol import ClassifierProvider, require_classifier
from axiom_spine.synthesis.classifier import sanitize_for_prompt

logger = get_logger(__name__)

PROMPT_VERSION = "v1.0.0"
MAX_OUTPUT_LENGTH = 150
MAX_INPUT_LENGTH = 500
CACHE_MAX_SIZE = 1000
HIGH_FALLBACK_RATE = 0.1

PRONOUN_PATTERN = re.compile(
    r"\b(I|we|you|my|our|your|me|us|myself|ourselves|yourself|yourselves)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class GeneralizedSignal:
    original: Signal
    text: str
    provenance: GeneralizationProvenance

    @property
    def used_fallback(self) -> bool:
        return self.provenance.used_fallback


def _sanitize(text: str) -> str:
    return (
        sanitize_for_prompt(text)[:MAX_INPUT_LENGTH]
        .replace("`", "'")
        .replace("\n", " ")
        .strip()
    )


def build_generalization_prompt(text: str, dimension: str | None = None) -> str:
    return (
        "Transform this specific statement into an abstract principle.\n\n"
        "The principle should:\n"
        "- Capture the core value or preference\n"
        "- Be general enough to match similar statements\n"
        "- Be actionable (can guide behavior)\n"
        f"- Stay under {MAX_OUTPUT_LENGTH} characters\n"
        '- Use imperative form (e.g., "Values X over Y", "Prioritizes Z")\n'
        "- Do NOT add policies or concepts not present in the original\n"
        "- Do NOT use pronouns (I, we, you) - abstract the actor\n"
        "- If the original has conditions, preserve them\n\n"
        f"<signal_text>\n{_sanitize(text)}\n</signal_text>\n\n"
        f"<dimension_context>\n{dimension or 'general'}\n</dimension_context>\n\n"
        "Output ONLY the generalized principle, nothing else."
    )


def validate_generalization(original: str, generalized: str) -> str | None:
    """Return why ``generalized`` is unusable, or None when it is valid."""
    if not generalized.strip():
        return "empty output"
    if len(generalized) > MAX_OUTPUT_LENGTH:
        return f"exceeds {MAX_OUTPUT_LENGTH} chars (got {len(generalized)})"
    pronoun = PRONOUN_PATTERN.search(generalized)
    if pronoun:
        return f'contains pronoun "{pronoun.group(0)}"'
    if len(generalized) > len(original) * 3 and len(generalized) > 100:
        return "output too long relative to input"
    return None


def cache_key(signal: Signal, model: str) -> str:
    digest = hashlib.sha256(signal.text.encode("utf-8")).hexdigest()[:16]
    return f"{signal.id}:{digest}:{PROMPT_VERSION}:{model}"


class SignalGeneralizer:
    """LLM rewrite of signal text with validation, fallback, and an LRU cache.

    Parameters
    ----------
    llm : ClassifierProvider | None
        Generation backend. Required.
    model : str
        Recorded in provenance and part of the cache key.
    concurrency : int
        Signals generalized per batch.
    cache_size : int
        Entries kept before the least recently used is evicted.
    """

    def __init__(
        self,
        llm: ClassifierProvider | None,
        *,
        model: str = "unknown",
        retry: RetryStrategy | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        concurrency: int = 10,
        cache_size: int = CACHE_MAX_SIZE,
    ) -> None:
        self._llm = llm
        self._model = model
        self._retry = retry or default_retry()
        self._call_timeout = call_timeout
        self._concurrency = concurrency
        self._cache_size = cache_size
        self._cache: OrderedDict[str, GeneralizedSignal] = OrderedDict()

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def generalize(self, signal: Signal) -> GeneralizedSignal:
        """Generalize one signal, falling back to its original text."""
        require_classifier(self._llm, "generalize_signal")
        reason: str | None
        try:
            response = await generate_text(
                self._llm,
                build_generalization_prompt(signal.text, signal.dimension),
                operation="generalize_signal",
                retry=self._retry,
                timeout=self._call_timeout,
            )
            text = response.strip()
            reason = validate_generalization(signal.text, text)
        except Exception as e:
            if not is_transient(e):
                raise
            text, reason = "", f"classifier failed: {e}"

        if reason is not None:
            logger.warning("generalizer.fallback", signal_id=signal.id, reason=reason)
            text = signal.text

        return GeneralizedSignal(
            original=signal,
            text=text,
            provenance=GeneralizationProvenance(
                original_text=signal.text,
                generalized_text=text,
                model=self._model,
                prompt_version=PROMPT_VERSION,
                used_fallback=reason is not None,
            ),
        )

    async def generalize_signals(self, signals: Sequence[Signal]) -> list[GeneralizedSignal]:
        """Generalize many signals in order, reusing cached results."""
        if not signals:
            return []

        keys = [cache_key(s, self._model) for s in signals]
        hits: dict[str, GeneralizedSignal] = {}
        pending: dict[str, Signal] = {}
        for key, signal in zip(keys, signals):
            if key in self._cache:
                self._cache.move_to_end(key)
                hits[key] = self._cache[key]
            else:
                pending[key] = signal

        fresh = await gather_in_batches(
            list(pending.values()), self.generalize, self._concurrency, label="generalize"
        )
        resolved = {**hits, **dict(zip(pending, fresh))}
        for key, result in zip(pending, fresh):
            self._remember(key, result)
        results = [resolved[key] for key in keys]

        fallbacks = sum(1 for r in fresh if r.used_fallback)
        logger.info(
            "generalizer.completed",
            signals=len(signals),
            cache_hits=len(hits),
            fallbacks=fallbacks,
        )
        if fresh and fallbacks / len(fresh) > HIGH_FALLBACK_RATE:
            logger.warning(
                "generalizer.high_fallback_rate",
                fallback_rate=round(fallbacks / len(fresh), 3),
            )
        return results

    def _remember(self, key: str, result: GeneralizedSignal) -> None:
        self._cache[key] = result
        self._cache.move_to_end(key)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)


__all__ = [
    "PROMPT_VERSION",
    "MAX_OUTPUT_LENGTH",
    "MAX_INPUT_LENGTH",
    "GeneralizedSignal",
    "SignalGeneralizer",
    "build_generalization_prompt",
    "validate_generalization",
    "cache_key",
]
