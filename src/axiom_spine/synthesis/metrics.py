"""Compression metrics.

Measures how much a synthesis pass condensed its input. Token counts are
a word-based approximation (words × 1.3, rounded up); no tokenizer is
involved.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from pydantic import BaseModel, Field

from axiom_spine.core.models import DIMENSIONS, Axiom, Principle, Signal

TOKENS_PER_WORD = 1.3


class DimensionCoverage(BaseModel):
    dimension: str
    signal_count: int = 0
    principle_count: int = 0
    axiom_count: int = 0


class SynthesisMetrics(BaseModel):
    original_tokens: int
    compressed_tokens: int
    compression_ratio: float
    semantic_density: float  # principles per 100 compressed tokens
    signal_count: int
    principle_count: int
    axiom_count: int
    dimension_coverage: list[DimensionCoverage] = Field(default_factory=list)
    convergence_rate: float  # share of signals that reinforced


def count_tokens(text: str) -> int:
    return math.ceil(len(text.split()) * TOKENS_PER_WORD)


def compression_ratio(original_tokens: int, compressed_tokens: int) -> float:
    return original_tokens / max(1, compressed_tokens)


def semantic_density(principle_count: int, token_count: int) -> float:
    if token_count == 0:
        return 0.0
    return principle_count / token_count * 100


def dimension_coverage(
    signals: Sequence[Signal],
    principles: Sequence[Principle],
    axioms: Sequence[Axiom],
) -> list[DimensionCoverage]:
    """Signal, principle and axiom counts for every dimension, in canonical order."""
    return [
        DimensionCoverage(
            dimension=dimension,
            signal_count=sum(1 for s in signals if s.dimension == dimension),
            principle_count=sum(1 for p in principles if p.dimension == dimension),
            axiom_count=sum(1 for a in axioms if a.dimension == dimension),
        )
        for dimension in DIMENSIONS
    ]


def convergence_rate(reinforced_count: int, signal_count: int) -> float:
    return reinforced_count / signal_count if signal_count > 0 else 0.0


def calculate_metrics(
    signals: Sequence[Signal],
    principles: Sequence[Principle],
    axioms: Sequence[Axiom],
    reinforced_count: int,
    *,
    original_text: str | None = None,
    compressed_text: str | None = None,
) -> SynthesisMetrics:
    """Compute every metric for one pass.

    ``original_text`` defaults to the joined signal texts and
    ``compressed_text`` to the joined notated axiom forms.
    """
    if original_text is None:
        original_text = " ".join(s.text for s in signals)
    if compressed_text is None:
        compressed_text = " ".join(a.canonical.notated for a in axioms)

    original = count_tokens(original_text)
    compressed = count_tokens(compressed_text)

    return SynthesisMetrics(
        original_tokens=original,
        compressed_tokens=compressed,
        compression_ratio=compression_ratio(original, compressed),
        semantic_density=semantic_density(len(principles), compressed),
        signal_count=len(signals),
        principle_count=len(principles),
        axiom_count=len(axioms),
        dimension_coverage=dimension_coverage(signals, principles, axioms),
        convergence_rate=convergence_rate(reinforced_count, len(signals)),
    )


def format_metrics_report(metrics: SynthesisMetrics) -> str:
    lines = [
        "## Compression Metrics",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Original tokens | {metrics.original_tokens} |",
        f"| Compressed tokens | {metrics.compressed_tokens} |",
        f"| **Compression ratio** | **{metrics.compression_ratio:.2f}:1** |",
        f"| Semantic density | {metrics.semantic_density:.2f} principles/100 tokens |",
        f"| Signals extracted | {metrics.signal_count} |",
        f"| Principles formed | {metrics.principle_count} |",
        f"| Axioms promoted | {metrics.axiom_count} |",
        f"| Convergence rate | {metrics.convergence_rate * 100:.1f}% |",
        "",
        "### Dimension Coverage",
        "",
        "| Dimension | Signals | Principles | Axioms |",
        "|-----------|---------|------------|--------|",
    ]
    for row in metrics.dimension_coverage:
        lines.append(
            f"| {row.dimension} | {row.signal_count} | {row.principle_count} | {row.axiom_count} |"
        )
    return "\n".join(lines)


__all__ = [
    "DimensionCoverage",
    "SynthesisMetrics",
    "count_tokens",
    "compression_ratio",
    "semantic_density",
    "dimension_coverage",
    "convergence_rate",
    "calculate_metrics",
    "format_metrics_report",
]
