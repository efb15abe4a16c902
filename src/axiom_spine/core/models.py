"""Data model for axiom-spine.

Pydantic v2 models for everything that is persisted or handed to a
renderer (signals, principles, axioms, the soul), plus small frozen
dataclasses for in-process configuration views.

Key Concepts:
    Signal: Atomic observed statement. Immutable once ingested.
    Principle: Cluster of reinforcing signals. ``n_count`` always equals
        the length of its append-only provenance list.
    Axiom: A principle promoted through the cascade and the
        anti-echo-chamber gate. Its tier is a pure function of the true
        ``n_count`` of the principle it was derived from.
    Soul: The durable aggregate written at the end of every cycle and
        schema-validated on load.

Architecture Decisions:
    - Pydantic v2 BaseModel: ``model_dump_json(indent=2)`` for persistence
      and ``model_validate()`` for restoration; an invalid document is a
      ``ValidationError``, which callers treat as absent state.
    - Closed vocabularies are ``Literal`` aliases, so raw classifier strings
      can never become keys without passing through validation.
    - Optional provenance fields are real ``None`` values, never "unknown".
    - Timestamps are ISO-8601 UTC strings.

Tags:
    models, pydantic, signals, principles, axioms, soul, provenance
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

Dimension = Literal[
    "identity-core",
    "character-traits",
    "voice-presence",
    "honesty-framework",
    "boundaries-ethics",
    "relationship-dynamics",
    "continuity-growth",
]
Stance = Literal["assert", "deny", "question", "qualify", "tensioning"]
Importance = Literal["core", "supporting", "peripheral"]
ArtifactProvenance = Literal["self", "curated", "external"]
SourceType = Literal["memory", "interview", "template"]
Centrality = Literal["defining", "significant", "contextual"]
Tier = Literal["core", "domain", "emerging"]
Severity = Literal["high", "medium", "low"]
SignalType = Literal[
    "value",
    "belief",
    "preference",
    "goal",
    "constraint",
    "relationship",
    "pattern",
    "correction",
    "boundary",
    "reinforcement",
]

DIMENSIONS: tuple[str, ...] = get_args(Dimension)
STANCES: tuple[str, ...] = get_args(Stance)
IMPORTANCES: tuple[str, ...] = get_args(Importance)
PROVENANCES: tuple[str, ...] = get_args(ArtifactProvenance)

IMPORTANCE_WEIGHT: dict[str, float] = {
    "core": 1.5,
    "supporting": 1.0,
    "peripheral": 0.5,
}

# Lower rank sorts first when n_count ties.
TIER_RANK: dict[str, int] = {"core": 0, "domain": 1, "emerging": 2}


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


class SignalSource(BaseModel):
    """Where a signal was observed."""

    model_config = ConfigDict(frozen=True)

    type: SourceType
    file: str
    section: str | None = None
    line: int | None = None
    context: str = ""
    extracted_at: str = Field(default_factory=utc_now_iso)


class Signal(BaseModel):
    """Atomic, fully classified observation. Never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    dimension: Dimension
    importance: Importance
    stance: Stance
    provenance: ArtifactProvenance
    source: SignalSource
    signal_type: SignalType | None = None


class SignalDraft(BaseModel):
    """Signal as ingestion produced it; unset attributes await classification."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: SignalSource
    dimension: Dimension | None = None
    importance: Importance | None = None
    stance: Stance | None = None
    provenance: ArtifactProvenance | None = None
    signal_type: SignalType | None = None

    def missing_attributes(self) -> list[str]:
        return [
            name
            for name in ("dimension", "importance", "stance", "provenance")
            if getattr(self, name) is None
        ]

    def complete(self, **attributes: str) -> Signal:
        """Build a Signal, filling only attributes the draft lacks."""
        data = self.model_dump()
        for name, value in attributes.items():
            if data.get(name) is None:
                data[name] = value
        return Signal.model_validate(data)


# ---------------------------------------------------------------------------
# Principles
# ---------------------------------------------------------------------------


class ProvenanceEntry(BaseModel):
    """One signal's contribution to a principle."""

    id: str
    similarity: float = Field(ge=0.0, le=1.0)
    source: SignalSource
    original_text: str | None = None
    stance: Stance | None = None
    importance: Importance | None = None
    provenance: ArtifactProvenance | None = None

    @classmethod
    def from_signal(cls, signal: Signal, similarity: float) -> ProvenanceEntry:
        return cls(
            id=signal.id,
            similarity=similarity,
            source=signal.source,
            original_text=signal.text,
            stance=signal.stance,
            importance=signal.importance,
            provenance=signal.provenance,
        )


class GeneralizationProvenance(BaseModel):
    """How a signal's wording became the principle text that seeded a cluster."""

    original_text: str
    generalized_text: str
    model: str = "unknown"
    prompt_version: str
    timestamp: str = Field(default_factory=utc_now_iso)
    used_fallback: bool = False
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class PrincipleProvenance(BaseModel):
    signals: list[ProvenanceEntry] = Field(default_factory=list)
    merged_at: str = Field(default_factory=utc_now_iso)
    generalization: GeneralizationProvenance | None = None


class PrincipleEvent(BaseModel):
    type: Literal["created", "reinforced", "merged", "promoted"]
    timestamp: str = Field(default_factory=utc_now_iso)
    details: str = ""


class Principle(BaseModel):
    """A cluster of signals expressing the same idea.

    Mutated only through reinforcement; provenance and history are
    append-only.
    """

    id: str
    text: str
    dimension: Dimension
    strength: float = Field(ge=0.0, le=1.0)
    n_count: int = Field(ge=1)
    similarity_threshold: float = Field(ge=0.0, le=1.0)
    centrality: Centrality = "contextual"
    derived_from: PrincipleProvenance
    history: list[PrincipleEvent] = Field(default_factory=list)
    coverage_pct: float | None = None

    @model_validator(mode="after")
    def _count_matches_provenance(self) -> Principle:
        if self.n_count != len(self.derived_from.signals):
            raise ValueError(
                f"n_count {self.n_count} does not match "
                f"{len(self.derived_from.signals)} provenance entries"
            )
        return self

    @property
    def signal_ids(self) -> list[str]:
        return [entry.id for entry in self.derived_from.signals]


# ---------------------------------------------------------------------------
# Axioms
# ---------------------------------------------------------------------------


class CanonicalForm(BaseModel):
    native: str
    notated: str


class AxiomPrincipleRef(BaseModel):
    """Snapshot of a contributing principle at promotion time."""

    id: str
    text: str
    n_count: int


class AxiomProvenance(BaseModel):
    principles: list[AxiomPrincipleRef] = Field(default_factory=list)
    promoted_at: str = Field(default_factory=utc_now_iso)


class AxiomEvent(BaseModel):
    type: Literal["created", "refined", "elevated"]
    timestamp: str = Field(default_factory=utc_now_iso)
    details: str = ""


class AxiomTension(BaseModel):
    axiom_id: str
    description: str
    severity: Severity


class Axiom(BaseModel):
    """A promoted (or promotion-blocked) principle."""

    id: str
    text: str
    tier: Tier
    dimension: Dimension
    canonical: CanonicalForm
    derived_from: AxiomProvenance
    history: list[AxiomEvent] = Field(default_factory=list)
    promotable: bool = True
    promotion_blocker: str | None = None
    provenance_diversity: int = 0
    tensions: list[AxiomTension] = Field(default_factory=list)

    @property
    def n_count(self) -> int:
        """True reinforcement count of the source principle."""
        principles = self.derived_from.principles
        return principles[0].n_count if principles else 0


# ---------------------------------------------------------------------------
# Durable state
# ---------------------------------------------------------------------------


class Soul(BaseModel):
    """Aggregate state carried across synthesis cycles."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    updated_at: str = Field(default_factory=utc_now_iso)
    axioms: list[Axiom] = Field(default_factory=list)
    principles: list[Principle] = Field(default_factory=list)
    cycle_count: int = Field(default=1, ge=1)


class OrphanedSignal(BaseModel):
    """A signal that seeded a new principle because nothing matched well enough."""

    signal_id: str
    text: str
    best_confidence: float
    principle_id: str


# ---------------------------------------------------------------------------
# Configuration views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PromotionCriteria:
    """Anti-echo-chamber gate parameters."""

    min_principle_count: int = 3
    min_provenance_diversity: int = 2
    require_external_or_questioning: bool = True


@dataclass(frozen=True)
class CycleThresholds:
    """Triggers that force a full resynthesis."""

    new_principle_ratio: float = 0.3
    contradiction_count: int = 2
    hierarchy_changed: bool = False


__all__ = [
    "Dimension",
    "Stance",
    "Importance",
    "ArtifactProvenance",
    "SourceType",
    "Centrality",
    "Tier",
    "Severity",
    "SignalType",
    "DIMENSIONS",
    "STANCES",
    "IMPORTANCES",
    "PROVENANCES",
    "IMPORTANCE_WEIGHT",
    "TIER_RANK",
    "utc_now_iso",
    "new_id",
    "SignalSource",
    "Signal",
    "SignalDraft",
    "ProvenanceEntry",
    "GeneralizationProvenance",
    "PrincipleProvenance",
    "PrincipleEvent",
    "Principle",
    "CanonicalForm",
    "AxiomPrincipleRef",
    "AxiomProvenance",
    "AxiomEvent",
    "AxiomTension",
    "Axiom",
    "Soul",
    "OrphanedSignal",
    "PromotionCriteria",
    "CycleThresholds",
]
