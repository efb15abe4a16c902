"""Provenance tracing: axiom → principles → signals.

Axioms carry a snapshot of the principles they were promoted from, and
principles carry an append-only list of the signals behind them. Tracing
follows those references back to the original observations, skipping
any id that is no longer present in the supplied collections.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

from axiom_spine.core.models import Axiom, Principle, Signal, SignalSource


class TracedAxiom(BaseModel):
    id: str
    text: str


class TracedPrinciple(BaseModel):
    id: str
    text: str
    n_count: int


class TracedSignal(BaseModel):
    id: str
    text: str
    source: SignalSource


class ProvenanceChain(BaseModel):
    """Full audit trail for one axiom."""

    axiom: TracedAxiom
    principles: list[TracedPrinciple] = Field(default_factory=list)
    signals: list[TracedSignal] = Field(default_factory=list)


def trace_to_source(
    axiom: Axiom,
    principles: Iterable[Principle],
    signals: Iterable[Signal],
) -> ProvenanceChain:
    """Build the provenance chain of ``axiom`` from the given state."""
    principle_map = {p.id: p for p in principles}
    signal_map = {s.id: s for s in signals}

    chain = ProvenanceChain(axiom=TracedAxiom(id=axiom.id, text=axiom.text))

    for ref in axiom.derived_from.principles:
        chain.principles.append(
            TracedPrinciple(id=ref.id, text=ref.text, n_count=ref.n_count)
        )
        principle = principle_map.get(ref.id)
        if principle is None:
            continue
        for entry in principle.derived_from.signals:
            signal = signal_map.get(entry.id)
            if signal is not None:
                chain.signals.append(
                    TracedSignal(id=signal.id, text=signal.text, source=signal.source)
                )

    return chain


def format_provenance_chain(chain: ProvenanceChain) -> str:
    lines = [f"Axiom {chain.axiom.id}: {chain.axiom.text}"]
    for principle in chain.principles:
        lines.append(f"  ← Principle {principle.id} (N={principle.n_count}): {principle.text}")
    for signal in chain.signals:
        location = signal.source.file
        if signal.source.line is not None:
            location += f":{signal.source.line}"
        lines.append(f"    ← Signal {signal.id} [{location}]: {signal.text}")
    return "\n".join(lines)


__all__ = [
    "ProvenanceChain",
    "TracedAxiom",
    "TracedPrinciple",
    "TracedSignal",
    "trace_to_source",
    "format_provenance_chain",
]
