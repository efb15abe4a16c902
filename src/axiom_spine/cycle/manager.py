"""Cycle mode decision.

Each run either merges new evidence into the existing soul or re-derives
it from scratch. The decision uses cheap token-set comparisons only; no
classifier calls are made here.

Decision order::

    force                          → full-resynthesis
    no existing soul               → initial
    any trigger fires              → full-resynthesis
    otherwise                      → incremental

Triggers:
    new-principle ratio   principles with Jaccard ≤ 0.7 to every existing
                          principle, over the existing count, > threshold
    contradictions        (existing axiom, new principle) pairs with
                          Jaccard > 0.5 where exactly one side is negated,
                          count ≥ threshold
    hierarchy changed     explicit flag
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from axiom_spine.core.logging import get_logger
from axiom_spine.core.models import (
    Axiom,
    CycleThresholds,
    Principle,
    Soul,
    utc_now_iso,
)

logger = get_logger(__name__)

CycleMode = Literal["initial", "incremental", "full-resynthesis"]

NOVELTY_SIMILARITY = 0.7
CONTRADICTION_SIMILARITY = 0.5

NEGATION_PATTERNS = tuple(
    re.compile(rf"\b{word}\b", re.IGNORECASE)
    for word in ("not", "never", "avoid", "don't", "shouldn't", "won't", "except")
)

_NON_WORD = re.compile(r"[^a-z0-9\s]")


@dataclass(frozen=True)
class CycleDecision:
    mode: CycleMode
    reason: str
    triggers: list[str] = field(default_factory=list)


def tokenize(text: str) -> set[str]:
    return set(_NON_WORD.sub("", text.lower()).split())


def jaccard_similarity(text1: str, text2: str) -> float:
    """Token-set Jaccard similarity; two empty texts are identical."""
    tokens1, tokens2 = tokenize(text1), tokenize(text2)
    if not tokens1 and not tokens2:
        return 1.0
    if not tokens1 or not tokens2:
        return 0.0
    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def has_negation(text: str) -> bool:
    return any(pattern.search(text) for pattern in NEGATION_PATTERNS)


def count_new_principles(
    existing: Sequence[Principle],
    candidates: Sequence[Principle],
    similarity_threshold: float = NOVELTY_SIMILARITY,
) -> int:
    return sum(
        1
        for candidate in candidates
        if not any(
            jaccard_similarity(e.text, candidate.text) > similarity_threshold
            for e in existing
        )
    )


def detect_contradictions(
    axioms: Sequence[Axiom], principles: Sequence[Principle]
) -> list[tuple[Axiom, Principle]]:
    found = []
    for axiom in axioms:
        axiom_negated = has_negation(axiom.text)
        for principle in principles:
            if jaccard_similarity(axiom.text, principle.text) <= CONTRADICTION_SIMILARITY:
                continue
            if axiom_negated != has_negation(principle.text):
                found.append((axiom, principle))
    return found


def decide_cycle_mode(
    existing_soul: Soul | None,
    new_principles: Sequence[Principle],
    thresholds: CycleThresholds | None = None,
    force: bool = False,
) -> CycleDecision:
    thresholds = thresholds or CycleThresholds()

    if force:
        return CycleDecision(
            mode="full-resynthesis",
            reason="Manual override",
            triggers=["force flag set"],
        )

    if existing_soul is None:
        return CycleDecision(mode="initial", reason="No existing soul state")

    triggers: list[str] = []

    existing_count = len(existing_soul.principles)
    if existing_count > 0:
        new_count = count_new_principles(existing_soul.principles, new_principles)
        ratio = new_count / existing_count
        if ratio > thresholds.new_principle_ratio:
            triggers.append(
                f"New principles ({ratio * 100:.0f}%) exceed threshold "
                f"({thresholds.new_principle_ratio * 100:.0f}%)"
            )

    contradictions = detect_contradictions(existing_soul.axioms, new_principles)
    if len(contradictions) >= thresholds.contradiction_count:
        triggers.append(f"{len(contradictions)} axioms contradicted by new evidence")

    if thresholds.hierarchy_changed:
        triggers.append("Axiom hierarchy has changed")

    if triggers:
        decision = CycleDecision(
            mode="full-resynthesis",
            reason="Significant changes detected",
            triggers=triggers,
        )
    else:
        decision = CycleDecision(
            mode="incremental", reason="Merge new principles into existing soul"
        )

    logger.debug("cycle.decided", mode=decision.mode, triggers=len(decision.triggers))
    return decision


def format_cycle_decision(decision: CycleDecision) -> str:
    lines = [f"Mode: {decision.mode}", f"Reason: {decision.reason}"]
    if decision.triggers:
        lines.append("Triggers:")
        lines.extend(f"  - {trigger}" for trigger in decision.triggers)
    return "\n".join(lines)


def create_soul(axioms: Sequence[Axiom], principles: Sequence[Principle]) -> Soul:
    return Soul(axioms=list(axioms), principles=list(principles), cycle_count=1)


def update_soul(
    soul: Soul, axioms: Sequence[Axiom], principles: Sequence[Principle]
) -> Soul:
    """New soul snapshot with the same id and ``cycle_count + 1``."""
    return soul.model_copy(
        update={
            "updated_at": utc_now_iso(),
            "axioms": list(axioms),
            "principles": list(principles),
            "cycle_count": soul.cycle_count + 1,
        }
    )


__all__ = [
    "CycleMode",
    "CycleDecision",
    "tokenize",
    "jaccard_similarity",
    "has_negation",
    "count_new_principles",
    "detect_contradictions",
    "decide_cycle_mode",
    "format_cycle_decision",
    "create_soul",
    "update_soul",
]
