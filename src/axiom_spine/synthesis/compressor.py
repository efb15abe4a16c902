"""Compressor: promotes converged principles into tiered axioms.

ARCHITECTURE
────────────
::

    compress_with_cascade(principles, signal_count)
      ├── count_at_threshold() for each cascade level  (no LLM calls)
      ├── select_threshold()   strictest level yielding ≥ min_axiom_target
      ├── synthesize candidates (n_count ≥ threshold) in bounded batches
      │     ├── notated form via llm.generate
      │     └── can_promote() gate → promotable / promotion_blocker
      ├── apply_cognitive_load_cap()  (n_count desc, tier rank) → kept / pruned
      ├── TensionDetector on kept axioms → attach_tensions()
      └── check_guardrails()  warnings only

Tier is a pure function of the source principle's true ``n_count``; the
cascade level that admitted a principle never changes its tier.

Anti-echo-chamber gate (rules checked in order, first failure wins):

    1. n_count ≥ min_principle_count
    2. distinct provenance categories ≥ min_provenance_diversity
    3. some external provenance OR some question/deny stance
       (only when require_external_or_questioning)

Gate failures do not drop the axiom; it is kept with ``promotable=False``
and the blocker message.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from axiom_spine.core.logging import get_logger
from axiom_spine.core.models import (
    TIER_RANK,
    Axiom,
    AxiomEvent,
    AxiomPrincipleRef,
    AxiomProvenance,
    CanonicalForm,
    Principle,
    PromotionCriteria,
    new_id,
)
from axiom_spine.execution.async_batch import gather_in_batches
from axiom_spine.execution.retry import RetryStrategy
from axiom_spine.llm.calls import DEFAULT_CALL_TIMEOUT, default_retry, generate_text
from axiom_spine.llm.protocol import ClassifierProvider, require_classifier
from axiom_spine.synthesis.guardrails import GuardrailWarnings, check_guardrails
from axiom_spine.synthesis.match_parsing import escape_for_prompt
from axiom_spine.synthesis.tensions import (
    MAX_AXIOMS_FOR_TENSION_DETECTION,
    TENSION_DETECTION_CONCURRENCY,
    TensionDetector,
    attach_tensions,
)

if TYPE_CHECKING:
    from axiom_spine.core.settings import SynthesisSettings

logger = get_logger(__name__)

CASCADE_THRESHOLDS: tuple[int, ...] = (3, 2, 1)
MIN_AXIOM_TARGET = 3
COGNITIVE_LOAD_CAP = 25
SYNTHESIS_CONCURRENCY = 5


# =============================================================================
# Result models
# =============================================================================


class CascadeMetadata(BaseModel):
    effective_threshold: int
    axiom_count_by_threshold: dict[int, int] = Field(default_factory=dict)


class CompressionMetrics(BaseModel):
    principles_processed: int = 0
    axioms_created: int = 0
    compression_ratio: float = 0.0


class CascadeCompressionResult(BaseModel):
    """Everything one compression pass produced."""

    axioms: list[Axiom] = Field(default_factory=list)
    unconverged: list[Principle] = Field(default_factory=list)
    pruned: list[Axiom] = Field(default_factory=list)
    cascade: CascadeMetadata
    guardrails: GuardrailWarnings = Field(default_factory=GuardrailWarnings)
    metrics: CompressionMetrics = Field(default_factory=CompressionMetrics)


@dataclass(frozen=True)
class PromotionCheck:
    promotable: bool
    blocker: str | None
    diversity: int


# =============================================================================
# Pure helpers
# =============================================================================


def count_at_threshold(principles: Sequence[Principle], threshold: int) -> int:
    return sum(1 for p in principles if p.n_count >= threshold)


def select_threshold(
    principles: Sequence[Principle],
    thresholds: Sequence[int] = CASCADE_THRESHOLDS,
    min_axiom_target: int = MIN_AXIOM_TARGET,
) -> tuple[int, dict[int, int]]:
    """Strictest threshold reaching ``min_axiom_target``, else 1.

    Returns the chosen threshold and the candidate count at every level.
    """
    counts = {t: count_at_threshold(principles, t) for t in thresholds}
    for threshold in thresholds:
        if counts[threshold] >= min_axiom_target:
            return threshold, counts
    return 1, counts


def determine_tier(n_count: int) -> str:
    if n_count >= 5:
        return "core"
    if n_count >= 3:
        return "domain"
    return "emerging"


def provenance_diversity(principle: Principle) -> int:
    """Number of distinct provenance categories among supporting signals."""
    return len(
        {entry.provenance for entry in principle.derived_from.signals if entry.provenance}
    )


def can_promote(
    principle: Principle, criteria: PromotionCriteria | None = None
) -> PromotionCheck:
    criteria = criteria or PromotionCriteria()
    diversity = provenance_diversity(principle)

    if principle.n_count < criteria.min_principle_count:
        return PromotionCheck(
            False,
            f"Insufficient evidence: {principle.n_count}/"
            f"{criteria.min_principle_count} supporting principles",
            diversity,
        )

    if diversity < criteria.min_provenance_diversity:
        return PromotionCheck(
            False,
            f"Insufficient provenance diversity: {diversity}/"
            f"{criteria.min_provenance_diversity} types",
            diversity,
        )

    if criteria.require_external_or_questioning:
        entries = principle.derived_from.signals
        has_external = any(e.provenance == "external" for e in entries)
        has_questioning = any(e.stance in ("question", "deny") for e in entries)
        if not has_external and not has_questioning:
            return PromotionCheck(
                False,
                "Anti-echo-chamber: requires EXTERNAL provenance OR "
                "QUESTIONING/DENYING stance",
                diversity,
            )

    return PromotionCheck(True, None, diversity)


def apply_cognitive_load_cap(
    axioms: Sequence[Axiom], cap: int = COGNITIVE_LOAD_CAP
) -> tuple[list[Axiom], list[Axiom]]:
    """Keep the ``cap`` strongest axioms; return (kept, pruned)."""
    if len(axioms) <= cap:
        return list(axioms), []
    ranked = sorted(axioms, key=lambda a: (-a.n_count, TIER_RANK[a.tier]))
    return ranked[:cap], ranked[cap:]


def _word_count(text: str) -> int:
    return len(text.split())


def notation_fallback(text: str) -> str:
    return f"📌 理: {text[:30]}"


def _notation_prompt(text: str) -> str:
    return (
        "Express this principle in compact notation with:\n"
        "1. An emoji indicator that captures the essence "
        "(e.g., 🎯 for focus, 💎 for truth, 🛡️ for safety)\n"
        "2. A single CJK character anchor "
        "(e.g., 誠 for honesty, 安 for safety, 明 for clarity)\n"
        "3. Mathematical notation if there's a relationship "
        '(e.g., "A > B" for priority, "¬X" for negation)\n\n'
        f"Principle: {escape_for_prompt(text)}\n\n"
        "Format your response as: [emoji] [CJK]: [math or brief summary]\n"
        'Example: "🎯 誠: honesty > performance"\n\n'
        "If no clear mathematical relationship, use a brief 2-3 word summary instead.\n"
        "Respond with ONLY the formatted notation, nothing else."
    )


# =============================================================================
# Compressor
# =============================================================================


class Compressor:
    """Cascade compression, promotion gate, load cap, and tension pass.

    Parameters
    ----------
    llm : ClassifierProvider | None
        Used for notation and tension prompts. Required.
    criteria : PromotionCriteria | None
        Anti-echo-chamber gate (defaults 3 / 2 / True).
    cascade_thresholds : Sequence[int]
        N-thresholds tried strictest first.
    min_axiom_target : int
        Candidate count a threshold must reach to be chosen.
    cognitive_load_cap : int
        Maximum axioms kept; the rest are returned as ``pruned``.
    """

    def __init__(
        self,
        llm: ClassifierProvider | None,
        *,
        criteria: PromotionCriteria | None = None,
        cascade_thresholds: Sequence[int] = CASCADE_THRESHOLDS,
        min_axiom_target: int = MIN_AXIOM_TARGET,
        cognitive_load_cap: int = COGNITIVE_LOAD_CAP,
        tension_axiom_cap: int = MAX_AXIOMS_FOR_TENSION_DETECTION,
        tension_concurrency: int = TENSION_DETECTION_CONCURRENCY,
        concurrency: int = SYNTHESIS_CONCURRENCY,
        retry: RetryStrategy | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self._llm = llm
        self._criteria = criteria or PromotionCriteria()
        self._thresholds = tuple(sorted(set(cascade_thresholds), reverse=True))
        self._min_axiom_target = min_axiom_target
        self._cap = cognitive_load_cap
        self._concurrency = concurrency
        self._retry = retry or default_retry()
        self._call_timeout = call_timeout
        self._tensions = TensionDetector(
            llm,
            max_axioms=tension_axiom_cap,
            concurrency=tension_concurrency,
            retry=self._retry,
            call_timeout=call_timeout,
        )

    @classmethod
    def from_settings(
        cls, llm: ClassifierProvider | None, settings: SynthesisSettings
    ) -> Compressor:
        return cls(
            llm,
            criteria=settings.promotion_criteria(),
            cascade_thresholds=settings.cascade_thresholds,
            min_axiom_target=settings.min_axiom_target,
            cognitive_load_cap=settings.cognitive_load_cap,
            tension_axiom_cap=settings.tension_axiom_cap,
            tension_concurrency=settings.tension_concurrency,
            concurrency=settings.tension_concurrency,
            retry=settings.retry_strategy(),
            call_timeout=settings.call_timeout_seconds,
        )

    async def generate_notation(self, text: str) -> str:
        response = await generate_text(
            self._llm,
            _notation_prompt(text),
            operation="generate_notation",
            retry=self._retry,
            timeout=self._call_timeout,
        )
        return response.strip() or notation_fallback(text)

    async def synthesize_axiom(self, principle: Principle) -> Axiom:
        notated = await self.generate_notation(principle.text)
        check = can_promote(principle, self._criteria)

        return Axiom(
            id=new_id("ax"),
            text=principle.text,
            tier=determine_tier(principle.n_count),
            dimension=principle.dimension,
            canonical=CanonicalForm(native=principle.text, notated=notated),
            derived_from=AxiomProvenance(
                principles=[
                    AxiomPrincipleRef(
                        id=principle.id, text=principle.text, n_count=principle.n_count
                    )
                ]
            ),
            history=[
                AxiomEvent(
                    type="created",
                    details=f"Promoted from principle {principle.id} (N={principle.n_count})",
                )
            ],
            promotable=check.promotable,
            promotion_blocker=check.blocker,
            provenance_diversity=check.diversity,
        )

    async def compress(
        self, principles: Sequence[Principle], threshold: int
    ) -> tuple[list[Axiom], list[Principle], CompressionMetrics]:
        """Synthesize every principle at or above ``threshold``."""
        require_classifier(self._llm, "compress")

        candidates = [p for p in principles if p.n_count >= threshold]
        unconverged = [p for p in principles if p.n_count < threshold]

        axioms = await gather_in_batches(
            candidates, self.synthesize_axiom, self._concurrency, label="compress"
        )

        original_words = sum(_word_count(p.text) for p in principles)
        notated_words = sum(_word_count(a.canonical.notated) for a in axioms)
        metrics = CompressionMetrics(
            principles_processed=len(principles),
            axioms_created=len(axioms),
            compression_ratio=original_words / notated_words if notated_words else 0.0,
        )
        return axioms, unconverged, metrics

    async def compress_with_cascade(
        self,
        principles: Sequence[Principle],
        signal_count: int | None = None,
    ) -> CascadeCompressionResult:
        """Run the full compression pass.

        Args:
            principles: Current principle set.
            signal_count: Signals behind the principles, for the guardrails.
                Defaults to the sum of principle ``n_count`` values.
        """
        require_classifier(self._llm, "compress_with_cascade")

        threshold, counts = select_threshold(
            principles, self._thresholds, self._min_axiom_target
        )
        logger.info(
            "compressor.threshold_selected",
            effective_threshold=threshold,
            counts=counts,
            principles=len(principles),
        )

        axioms, unconverged, metrics = await self.compress(principles, threshold)

        kept, pruned = apply_cognitive_load_cap(axioms, self._cap)
        if pruned:
            logger.info("compressor.pruned", pruned=len(pruned), cap=self._cap)

        tensions = await self._tensions.detect(kept)
        if tensions:
            kept = attach_tensions(kept, tensions)

        if signal_count is None:
            signal_count = sum(p.n_count for p in principles)
        guardrails = check_guardrails(len(kept), signal_count, threshold)

        blocked = sum(1 for a in kept if not a.promotable)
        logger.info(
            "compressor.completed",
            axioms=len(kept),
            blocked=blocked,
            unconverged=len(unconverged),
            tensions=len(tensions),
        )

        return CascadeCompressionResult(
            axioms=kept,
            unconverged=unconverged,
            pruned=pruned,
            cascade=CascadeMetadata(
                effective_threshold=threshold, axiom_count_by_threshold=counts
            ),
            guardrails=guardrails,
            metrics=metrics,
        )


async def compress_with_cascade(
    llm: ClassifierProvider | None,
    principles: Sequence[Principle],
    signal_count: int | None = None,
    *,
    criteria: PromotionCriteria | None = None,
) -> CascadeCompressionResult:
    """Compress with default settings."""
    return await Compressor(llm, criteria=criteria).compress_with_cascade(
        principles, signal_count
    )


__all__ = [
    "CASCADE_THRESHOLDS",
    "MIN_AXIOM_TARGET",
    "COGNITIVE_LOAD_CAP",
    "CascadeMetadata",
    "CompressionMetrics",
    "CascadeCompressionResult",
    "PromotionCheck",
    "Compressor",
    "compress_with_cascade",
    "count_at_threshold",
    "select_threshold",
    "determine_tier",
    "provenance_diversity",
    "can_promote",
    "apply_cognitive_load_cap",
    "notation_fallback",
]
