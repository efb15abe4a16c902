"""Single-pass synthesis.

Classify once, generalize once, cluster once, compress once::

    drafts ──SignalClassifier──▶ signals ──SignalGeneralizer──▶ generalized
           ──PrincipleStore──▶ principles
           ──Compressor──▶ axioms (+ tensions, guardrails)

There is no iteration loop: re-feeding signals into a store that already
holds them would only make them match themselves.

The pass can start from an existing principle snapshot (incremental
cycles); signals already represented in that snapshot are skipped by the
store.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Sequence

from pydantic import BaseModel, Field

from axiom_spine.core.logging import get_logger
from axiom_spine.core.models import Axiom, OrphanedSignal, Principle, Signal, SignalDraft
from axiom_spine.core.settings import SynthesisSettings
from axiom_spine.llm.protocol import ClassifierProvider, require_classifier
from axiom_spine.synthesis.classifier import SignalClassifier
from axiom_spine.synthesis.compressor import CascadeCompressionResult, Compressor
from axiom_spine.synthesis.generalizer import SignalGeneralizer
from axiom_spine.synthesis.guardrails import GuardrailWarnings
from axiom_spine.synthesis.matcher import SemanticMatcher
from axiom_spine.synthesis.metrics import SynthesisMetrics, calculate_metrics
from axiom_spine.synthesis.principle_store import AddSignalResult, PrincipleStore

logger = get_logger(__name__)


class PromotionStats(BaseModel):
    promotable: int = 0
    blocked: int = 0
    reasons: dict[str, int] = Field(default_factory=dict)


class SynthesisResult(BaseModel):
    """Outcome of one synthesis pass."""

    signals: list[Signal] = Field(default_factory=list)
    principles: list[Principle] = Field(default_factory=list)
    axioms: list[Axiom] = Field(default_factory=list)
    unconverged: list[Principle] = Field(default_factory=list)
    pruned: list[Axiom] = Field(default_factory=list)
    orphaned_signals: list[OrphanedSignal] = Field(default_factory=list)
    effective_threshold: int
    guardrails: GuardrailWarnings = Field(default_factory=GuardrailWarnings)
    duration_ms: float = 0.0
    signal_count: int = 0
    reinforced_count: int = 0
    skipped_count: int = 0
    compression_ratio: float = 0.0  # signals per kept axiom
    provenance_distribution: dict[str, int] = Field(default_factory=dict)
    promotion_stats: PromotionStats = Field(default_factory=PromotionStats)
    metrics: SynthesisMetrics


def promotion_stats(axioms: Sequence[Axiom]) -> PromotionStats:
    stats = PromotionStats()
    for axiom in axioms:
        if axiom.promotable:
            stats.promotable += 1
        else:
            stats.blocked += 1
            reason = axiom.promotion_blocker or "Unknown"
            stats.reasons[reason] = stats.reasons.get(reason, 0) + 1
    return stats


def provenance_distribution(signals: Sequence[Signal]) -> dict[str, int]:
    return dict(Counter(signal.provenance for signal in signals))


class SynthesisPipeline:
    """Wires classifier, store and compressor from one settings object."""

    def __init__(
        self,
        llm: ClassifierProvider | None,
        settings: SynthesisSettings | None = None,
    ) -> None:
        self._llm = llm
        self._settings = settings or SynthesisSettings()
        retry = self._settings.retry_strategy()
        self.classifier = SignalClassifier(
            llm,
            retry=retry,
            call_timeout=self._settings.call_timeout_seconds,
            concurrency=self._settings.classify_concurrency,
        )
        self.matcher = SemanticMatcher(
            llm,
            retry=retry,
            batch_size=self._settings.match_batch_size,
            call_timeout=self._settings.call_timeout_seconds,
        )
        self.generalizer = SignalGeneralizer(
            llm,
            model=self._settings.generalization_model,
            retry=retry,
            call_timeout=self._settings.call_timeout_seconds,
            concurrency=self._settings.classify_concurrency,
        )
        self.compressor = Compressor.from_settings(llm, self._settings)

    @property
    def settings(self) -> SynthesisSettings:
        return self._settings

    def new_store(self, seed: Sequence[Principle] = ()) -> PrincipleStore:
        return PrincipleStore.from_principles(
            self.matcher, seed, threshold=self._settings.match_threshold
        )

    async def cluster(
        self, store: PrincipleStore, signals: Sequence[Signal]
    ) -> list[AddSignalResult]:
        """Feed classified signals into ``store``, generalized when enabled."""
        if not self._settings.generalize_signals:
            return await store.add_signals(signals)
        fresh = [s for s in signals if s.id not in store.processed_signal_ids]
        generalized = await self.generalizer.generalize_signals(fresh)
        results = await store.add_generalized_signals(generalized)
        skipped = len(signals) - len(fresh)
        return [AddSignalResult("skipped", None, 0.0)] * skipped + results

    async def run(
        self,
        signals: Sequence[Signal | SignalDraft],
        *,
        seed_principles: Sequence[Principle] = (),
    ) -> SynthesisResult:
        """Run one pass over ``signals``, optionally on top of ``seed_principles``."""
        require_classifier(self._llm, "synthesize")
        started = time.perf_counter()
        logger.info(
            "synthesis.started",
            signals=len(signals),
            seed_principles=len(seed_principles),
        )

        classified = await self.classifier.classify_signals(signals)

        store = self.new_store(seed_principles)
        results = await self.cluster(store, classified)
        reinforced = sum(1 for r in results if r.action == "reinforced")
        skipped = sum(1 for r in results if r.action == "skipped")

        principles = store.get_principles()
        logger.info(
            "synthesis.clustered",
            principles=len(principles),
            reinforced=reinforced,
            skipped=skipped,
            orphans=len(store.orphaned_signals),
        )

        compression: CascadeCompressionResult = await self.compressor.compress_with_cascade(
            principles, signal_count=sum(p.n_count for p in principles)
        )

        axioms = compression.axioms
        stats = promotion_stats(axioms)
        duration_ms = (time.perf_counter() - started) * 1000
        ratio = len(classified) / len(axioms) if axioms else 0.0

        logger.info(
            "synthesis.completed",
            signals=len(classified),
            principles=len(principles),
            axioms=len(axioms),
            compression_ratio=round(ratio, 2),
            duration_ms=round(duration_ms, 2),
        )
        if stats.blocked:
            logger.info(
                "synthesis.promotion_blocked",
                promotable=stats.promotable,
                blocked=stats.blocked,
            )

        return SynthesisResult(
            signals=classified,
            principles=principles,
            axioms=axioms,
            unconverged=compression.unconverged,
            pruned=compression.pruned,
            orphaned_signals=store.orphaned_signals,
            effective_threshold=compression.cascade.effective_threshold,
            guardrails=compression.guardrails,
            duration_ms=duration_ms,
            signal_count=len(classified),
            reinforced_count=reinforced,
            skipped_count=skipped,
            compression_ratio=ratio,
            provenance_distribution=provenance_distribution(classified),
            promotion_stats=stats,
            metrics=calculate_metrics(classified, principles, axioms, reinforced),
        )


async def run_synthesis(
    llm: ClassifierProvider | None,
    signals: Sequence[Signal | SignalDraft],
    settings: SynthesisSettings | None = None,
) -> SynthesisResult:
    return await SynthesisPipeline(llm, settings).run(signals)


def format_synthesis_report(result: SynthesisResult) -> str:
    lines = [
        "# Synthesis Report",
        "",
        f"**Duration**: {result.duration_ms:.0f}ms",
        f"**Compression**: {result.compression_ratio:.1f}:1",
        "",
        "## Results",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Signals | {result.signal_count} |",
        f"| Principles | {len(result.principles)} |",
        f"| Axioms | {len(result.axioms)} |",
        f"| Unconverged | {len(result.unconverged)} |",
        f"| Pruned | {len(result.pruned)} |",
        f"| Effective Threshold | {result.effective_threshold} |",
        "",
    ]

    if result.provenance_distribution:
        lines += ["## Provenance Distribution", "", "| Type | Count |", "|------|-------|"]
        for kind, count in result.provenance_distribution.items():
            lines.append(f"| {kind} | {count} |")
        lines.append("")

    stats = result.promotion_stats
    lines += [
        "## Axiom Promotion",
        "",
        "| Status | Count |",
        "|--------|-------|",
        f"| Promotable | {stats.promotable} |",
        f"| Blocked | {stats.blocked} |",
        "",
    ]
    if stats.blocked and stats.reasons:
        lines += ["### Block Reasons", ""]
        for reason, count in stats.reasons.items():
            lines.append(f"- {reason}: {count}")
        lines.append("")

    if result.guardrails.messages:
        lines += ["## Guardrail Warnings", ""]
        for message in result.guardrails.messages:
            lines.append(f"- {message}")
        lines.append("")

    return "\n".join(lines)


__all__ = [
    "PromotionStats",
    "SynthesisResult",
    "SynthesisPipeline",
    "run_synthesis",
    "promotion_stats",
    "provenance_distribution",
    "format_synthesis_report",
]
