"""Principle Store — online clustering of signals into principles.

Each incoming signal either reinforces the principle it means the same
thing as, or seeds a new one. Routing depends on the clusters that exist
at that moment, so ingestion is sequential: the mutation path runs under
an ``asyncio.Lock`` and concurrent ``add_signal`` calls queue up.

State machine::

    store:      empty ──first signal──▶ populated
    principle:  created ──match ≥ threshold──▶ reinforced ⟲

Reinforcement::

    n_count  += 1
    strength  = min(1, strength + signal.confidence × 0.1 × weight)
                weight: core 1.5 · supporting 1.0 · peripheral 0.5
    provenance.append(entry)        (never rewritten)
    centrality = f(core-importance ratio)   ≥0.5 defining · ≥0.2 significant
    history.append("reinforced")

A signal that seeds a new principle because its best match fell below
the threshold is recorded as an ``OrphanedSignal``. The very first
principle of an empty store is not an orphan.

Generalized signals (``add_generalized_signal``) are matched and seeded on
their generalized wording; the provenance entry keeps the original text.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from axiom_spine.core.logging import get_logger
from axiom_spine.core.models import (
    IMPORTANCE_WEIGHT,
    GeneralizationProvenance,
    OrphanedSignal,
    Principle,
    PrincipleEvent,
    PrincipleProvenance,
    ProvenanceEntry,
    Signal,
    new_id,
)
from axiom_spine.synthesis.generalizer import GeneralizedSignal
from axiom_spine.synthesis.matcher import SemanticMatcher

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.75
REINFORCEMENT_RATE = 0.1


@dataclass(frozen=True)
class AddSignalResult:
    action: Literal["created", "reinforced", "skipped"]
    principle_id: str | None
    confidence: float


def compute_centrality(principle: Principle) -> str:
    """Centrality from the share of core-importance signals."""
    entries = principle.derived_from.signals
    if not entries:
        return "contextual"
    ratio = sum(1 for e in entries if e.importance == "core") / len(entries)
    if ratio >= 0.5:
        return "defining"
    if ratio >= 0.2:
        return "significant"
    return "contextual"


class PrincipleStore:
    """Mutable set of principles built from a stream of signals.

    Parameters
    ----------
    matcher : SemanticMatcher
        Comparator used to route signals. Its errors propagate unchanged.
    threshold : float
        Minimum matcher confidence for reinforcement.
    """

    def __init__(self, matcher: SemanticMatcher, threshold: float = DEFAULT_THRESHOLD) -> None:
        self._matcher = matcher
        self._threshold = threshold
        self._principles: dict[str, Principle] = {}
        self._processed: set[str] = set()
        self._orphans: list[OrphanedSignal] = []
        self._lock = asyncio.Lock()

    # ── Construction ─────────────────────────────────────────────────

    @classmethod
    def from_principles(
        cls,
        matcher: SemanticMatcher,
        principles: Iterable[Principle],
        threshold: float = DEFAULT_THRESHOLD,
    ) -> PrincipleStore:
        store = cls(matcher, threshold)
        store.seed(principles)
        return store

    def seed(self, principles: Iterable[Principle]) -> None:
        """Restore a prior snapshot; its signal ids count as processed."""
        for principle in principles:
            restored = principle.model_copy(deep=True)
            self._principles[restored.id] = restored
            self._processed.update(restored.signal_ids)
        logger.debug("principle_store.seeded", principles=len(self._principles))

    # ── Configuration ────────────────────────────────────────────────

    @property
    def threshold(self) -> float:
        return self._threshold

    def set_threshold(self, threshold: float) -> None:
        """Change the threshold for future matching; existing clusters stay."""
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Threshold must lie in [0, 1], got {threshold}")
        self._threshold = threshold

    # ── Ingestion ────────────────────────────────────────────────────

    async def add_signal(self, signal: Signal) -> AddSignalResult:
        return await self._add(signal, signal.text)

    async def add_generalized_signal(self, generalized: GeneralizedSignal) -> AddSignalResult:
        """Route on the generalized wording; provenance keeps the original."""
        return await self._add(generalized.original, generalized.text, generalized.provenance)

    async def _add(
        self,
        signal: Signal,
        text: str,
        generalization: GeneralizationProvenance | None = None,
    ) -> AddSignalResult:
        async with self._lock:
            if signal.id in self._processed:
                logger.debug("principle_store.skipped", signal_id=signal.id)
                return AddSignalResult("skipped", None, 0.0)

            if not self._principles:
                principle = self._create(signal, text, generalization, best_confidence=None)
                self._processed.add(signal.id)
                return AddSignalResult("created", principle.id, 1.0)

            principles = list(self._principles.values())
            best = await self._matcher.find_best(text, [p.text for p in principles])

            if best.matched and best.confidence >= self._threshold:
                principle = principles[best.index]
                self._reinforce(principle, signal, best.confidence)
                self._processed.add(signal.id)
                return AddSignalResult("reinforced", principle.id, best.confidence)

            principle = self._create(
                signal, text, generalization, best_confidence=best.confidence
            )
            self._orphans.append(
                OrphanedSignal(
                    signal_id=signal.id,
                    text=signal.text,
                    best_confidence=best.confidence,
                    principle_id=principle.id,
                )
            )
            self._processed.add(signal.id)
            return AddSignalResult("created", principle.id, best.confidence)

    async def add_signals(self, signals: Iterable[Signal]) -> list[AddSignalResult]:
        """Ingest signals in order, then refresh coverage percentages."""
        results = [await self.add_signal(signal) for signal in signals]
        self.update_coverage()
        return results

    async def add_generalized_signals(
        self, signals: Iterable[GeneralizedSignal]
    ) -> list[AddSignalResult]:
        results = [await self.add_generalized_signal(signal) for signal in signals]
        self.update_coverage()
        return results

    def _create(
        self,
        signal: Signal,
        text: str,
        generalization: GeneralizationProvenance | None,
        best_confidence: float | None,
    ) -> Principle:
        details = f"Created from signal {signal.id}"
        if best_confidence is not None:
            details += f" (best match was {best_confidence:.3f})"

        principle = Principle(
            id=new_id("pri"),
            text=text,
            dimension=signal.dimension,
            strength=signal.confidence,
            n_count=1,
            similarity_threshold=self._threshold,
            derived_from=PrincipleProvenance(
                signals=[ProvenanceEntry.from_signal(signal, 1.0)],
                generalization=generalization,
            ),
            history=[PrincipleEvent(type="created", details=details)],
        )
        principle.centrality = compute_centrality(principle)
        self._principles[principle.id] = principle

        logger.debug(
            "principle_store.created",
            principle_id=principle.id,
            signal_id=signal.id,
            best_confidence=best_confidence,
            threshold=self._threshold,
        )
        return principle

    def _reinforce(self, principle: Principle, signal: Signal, confidence: float) -> None:
        weight = IMPORTANCE_WEIGHT.get(signal.importance, 1.0)
        principle.derived_from.signals.append(ProvenanceEntry.from_signal(signal, confidence))
        principle.n_count += 1
        principle.strength = min(
            1.0, principle.strength + signal.confidence * REINFORCEMENT_RATE * weight
        )
        principle.centrality = compute_centrality(principle)
        principle.history.append(
            PrincipleEvent(
                type="reinforced",
                details=f"Reinforced by signal {signal.id} (confidence: {confidence:.3f})",
            )
        )

        logger.debug(
            "principle_store.reinforced",
            principle_id=principle.id,
            signal_id=signal.id,
            confidence=confidence,
            n_count=principle.n_count,
        )

    def update_coverage(self) -> None:
        """Set each principle's share of all clustered signals, in percent."""
        total = sum(p.n_count for p in self._principles.values())
        if total == 0:
            return
        for principle in self._principles.values():
            principle.coverage_pct = round(principle.n_count / total * 100, 2)

    # ── Inspection ───────────────────────────────────────────────────

    def get_principles(self) -> list[Principle]:
        return list(self._principles.values())

    def get_principles_above_n(self, n: int) -> list[Principle]:
        return [p for p in self._principles.values() if p.n_count >= n]

    def get_principle(self, principle_id: str) -> Principle | None:
        return self._principles.get(principle_id)

    @property
    def orphaned_signals(self) -> list[OrphanedSignal]:
        return list(self._orphans)

    @property
    def principle_count(self) -> int:
        return len(self._principles)

    @property
    def processed_signal_ids(self) -> frozenset[str]:
        return frozenset(self._processed)


__all__ = [
    "AddSignalResult",
    "PrincipleStore",
    "compute_centrality",
    "DEFAULT_THRESHOLD",
]
