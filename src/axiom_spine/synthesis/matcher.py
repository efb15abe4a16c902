"""Semantic matcher — the stateless comparator behind clustering.

Given a text and the representative texts of existing principles, the
matcher asks the classifier which candidate expresses the same core
meaning and how sure it is.

ARCHITECTURE
────────────
::

    find_best(text, candidates)
      ├── drop empty candidates (original indices kept)
      ├── ≤ batch_size candidates → one batch prompt
      │       └── malformed answer → pairwise is_equivalent() per candidate
      └── > batch_size → chunks of batch_size, best across chunks wins
                   (same per-chunk pairwise fallback)

    every classifier call: with_deadline_async(call_timeout)
                           inside RetryContext(ExponentialBackoff(retry_if=is_transient))

Transient failures are retried with backoff and then surfaced. Anything
else propagates on the first occurrence. There is no string-similarity
fallback when the classifier is missing or failing.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from axiom_spine.core.logging import get_logger
from axiom_spine.execution.async_batch import chunked
from axiom_spine.execution.retry import RetryStrategy
from axiom_spine.llm.calls import DEFAULT_CALL_TIMEOUT, default_retry, generate_text
from axiom_spine.llm.protocol import ClassifierProvider, require_classifier
from axiom_spine.synthesis.match_parsing import (
    BatchVerdict,
    EquivalenceVerdict,
    escape_for_prompt,
    parse_batch_response,
    parse_equivalence_response,
)

logger = get_logger(__name__)

MAX_BATCH_SIZE = 20


@dataclass(frozen=True)
class MatchResult:
    """Best candidate for a text.

    ``index`` refers to the caller's candidate list and is -1 when nothing
    matched; ``confidence`` is the best confidence observed either way.
    """

    index: int
    confidence: float

    @property
    def matched(self) -> bool:
        return self.index >= 0


NO_MATCH = MatchResult(index=-1, confidence=0.0)


def _equivalence_prompt(text_a: str, text_b: str) -> str:
    return (
        "Compare these two statements for semantic equivalence. Do they express "
        "the same core meaning, even if worded differently?\n\n"
        f"Statement A: {escape_for_prompt(text_a)}\n\n"
        f"Statement B: {escape_for_prompt(text_b)}\n\n"
        "Respond with ONLY a JSON object in this exact format:\n"
        '{"equivalent": true/false, "confidence": "high"/"medium"/"low"}'
    )


def _batch_prompt(text: str, candidates: Sequence[str]) -> str:
    listing = "\n".join(
        f"{i}. {escape_for_prompt(candidate)}" for i, candidate in enumerate(candidates)
    )
    return (
        "Find the candidate that is semantically equivalent to the target "
        "statement. The statements should express the same core meaning, even "
        "if worded differently.\n\n"
        f"Target statement: {escape_for_prompt(text)}\n\n"
        f"Candidates:\n{listing}\n\n"
        "If one candidate matches, respond with ONLY a JSON object:\n"
        '{"bestMatchIndex": <number>, "confidence": "high"/"medium"/"low"}\n\n'
        "If NO candidate is semantically equivalent, respond with:\n"
        '{"bestMatchIndex": -1, "noMatch": true}'
    )


class SemanticMatcher:
    """Classifier-backed semantic comparator.

    Parameters
    ----------
    llm : ClassifierProvider | None
        Injected classifier. ``None`` makes every comparison raise
        ``ClassifierRequiredError``.
    retry : RetryStrategy | None
        Policy for transient failures (default: 3 attempts, 0.5 s ×2).
    batch_size : int
        Candidates per batch prompt.
    call_timeout : float
        Deadline per classifier call, in seconds.
    """

    def __init__(
        self,
        llm: ClassifierProvider | None,
        *,
        retry: RetryStrategy | None = None,
        batch_size: int = MAX_BATCH_SIZE,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self._llm = llm
        self._retry = retry or default_retry()
        self._batch_size = batch_size
        self._call_timeout = call_timeout

    @property
    def llm(self) -> ClassifierProvider | None:
        return self._llm

    async def _generate(self, prompt: str, operation: str) -> str:
        return await generate_text(
            self._llm,
            prompt,
            operation=operation,
            retry=self._retry,
            timeout=self._call_timeout,
        )

    # ── Pairwise ─────────────────────────────────────────────────────

    async def is_equivalent(self, text_a: str, text_b: str) -> EquivalenceVerdict:
        """Ask whether two statements share the same core meaning."""
        require_classifier(self._llm, "is_equivalent")
        if not text_a.strip() or not text_b.strip():
            return EquivalenceVerdict(False, 1.0)

        response = await self._generate(_equivalence_prompt(text_a, text_b), "is_equivalent")
        return parse_equivalence_response(response)

    # ── Best match ───────────────────────────────────────────────────

    async def find_best(self, text: str, candidates: Sequence[str]) -> MatchResult:
        """Best candidate for ``text`` regardless of threshold."""
        require_classifier(self._llm, "match_best")
        if not text.strip():
            return NO_MATCH

        indexed = [(i, c) for i, c in enumerate(candidates) if c and c.strip()]
        if not indexed:
            return NO_MATCH

        best = NO_MATCH
        for chunk in chunked(indexed, self._batch_size):
            result = await self._match_chunk(text, chunk)
            if result.matched and result.confidence > best.confidence:
                best = result

        logger.debug(
            "matcher.best",
            candidates=len(indexed),
            index=best.index,
            confidence=best.confidence,
        )
        return best

    async def match_best(
        self, text: str, candidates: Sequence[str], threshold: float
    ) -> MatchResult | None:
        """Best candidate at or above ``threshold``, else None."""
        result = await self.find_best(text, candidates)
        if not result.matched or result.confidence < threshold:
            return None
        return result

    async def _match_chunk(self, text: str, chunk: list[tuple[int, str]]) -> MatchResult:
        texts = [candidate for _, candidate in chunk]
        response = await self._generate(_batch_prompt(text, texts), "match_best")
        verdict: BatchVerdict | None = parse_batch_response(response, len(texts))

        if verdict is not None:
            if verdict.index < 0:
                return NO_MATCH
            return MatchResult(index=chunk[verdict.index][0], confidence=verdict.confidence)

        logger.warning("matcher.batch_fallback", candidates=len(chunk))
        best = NO_MATCH
        for original_index, candidate in chunk:
            pair = await self.is_equivalent(text, candidate)
            if pair.equivalent and pair.confidence > best.confidence:
                best = MatchResult(index=original_index, confidence=pair.confidence)
        return best


__all__ = ["MatchResult", "NO_MATCH", "SemanticMatcher", "MAX_BATCH_SIZE"]
