"""Cross-run synthesis orchestration.

ARCHITECTURE
────────────
::

    run_cycle(workspace, signals, llm)
      │
      ├── SynthesisLock(<workspace>/.axiom-spine)        one writer
      ├── load_soul() + load_signals()                   prior state
      ├── classify incoming, keep ids not seen before    new evidence
      ├── scratch store over new signals                 candidate principles
      ├── decide_cycle_mode(soul, candidates)
      │     ├── initial / full-resynthesis → fresh store, prior + incoming signals
      │     │     (seeded from soul when prior signals are lost)
      │     └── incremental                → store seeded from soul, new signals
      ├── compress (cascade, gate, cap, tensions, guardrails)
      ├── create_soul() / update_soul()
      ├── persist (skipped on dry_run)
      └── release lock (every exit path)

Nothing is written until the full pass has completed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from axiom_spine.core.logging import LogContext, get_logger
from axiom_spine.core.models import Signal, SignalDraft, Soul, new_id
from axiom_spine.core.settings import SynthesisSettings
from axiom_spine.cycle.lock import SynthesisLock
from axiom_spine.cycle.manager import (
    CycleDecision,
    CycleMode,
    create_soul,
    decide_cycle_mode,
    update_soul,
)
from axiom_spine.cycle.persistence import (
    load_signals,
    load_soul,
    save_soul,
    save_synthesis_data,
)
from axiom_spine.llm.protocol import ClassifierProvider, require_classifier
from axiom_spine.synthesis.pipeline import SynthesisPipeline, SynthesisResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class CycleStats:
    new_principles: int = 0
    merged_principles: int = 0
    axiom_changes: int = 0
    persisted: bool = False


@dataclass
class CycleSynthesisResult:
    mode: CycleMode
    decision: CycleDecision
    soul: Soul
    synthesis: SynthesisResult
    stats: CycleStats = field(default_factory=CycleStats)


def _axiom_changes(previous: Soul | None, current: Soul) -> int:
    before = {a.text for a in previous.axioms} if previous else set()
    after = {a.text for a in current.axioms}
    return len(before ^ after)


def _merge_signals(prior: Sequence[Signal], incoming: Sequence[Signal]) -> list[Signal]:
    """Prior signals followed by unseen incoming ones, one entry per id."""
    merged: dict[str, Signal] = {}
    for signal in [*prior, *incoming]:
        merged.setdefault(signal.id, signal)
    return list(merged.values())


def _missing_evidence(soul: Soul, evidence: Sequence[Signal]) -> set[str]:
    """Signal ids the soul was built from that are no longer on hand."""
    have = {s.id for s in evidence}
    return {sid for p in soul.principles for sid in p.signal_ids if sid not in have}


def _principle_stats(previous: Soul | None, result: SynthesisResult) -> tuple[int, int]:
    """(principles not in the prior soul, prior principles that gained evidence)."""
    prior = {p.id: p.n_count for p in previous.principles} if previous else {}
    new = sum(1 for p in result.principles if p.id not in prior)
    merged = sum(1 for p in result.principles if p.id in prior and p.n_count > prior[p.id])
    return new, merged


async def run_cycle(
    workspace: str | Path,
    signals: Sequence[Signal | SignalDraft],
    llm: ClassifierProvider | None,
    *,
    settings: SynthesisSettings | None = None,
    force: bool = False,
    dry_run: bool = False,
    hierarchy_changed: bool = False,
) -> CycleSynthesisResult:
    """Run one synthesis cycle against the workspace state.

    Raises:
        ClassifierRequiredError: No classifier was supplied.
        LockContentionError: Another live process is synthesizing.
        StorageError: State could not be written.
    """
    require_classifier(llm, "run_cycle")
    settings = settings or SynthesisSettings()
    dir_name = settings.state_dir_name
    pipeline = SynthesisPipeline(llm, settings)

    async with LogContext(run_id=new_id("run"), workspace=str(workspace)):
        async with SynthesisLock(settings.state_dir(workspace)):
            soul = load_soul(workspace, dir_name=dir_name)
            prior_signals = load_signals(workspace, dir_name=dir_name)
            seen = {s.id for s in prior_signals}
            if soul is not None:
                for principle in soul.principles:
                    seen.update(principle.signal_ids)

            incoming = await pipeline.classifier.classify_signals(signals)
            new_signals = [s for s in incoming if s.id not in seen]
            logger.info(
                "cycle.started",
                incoming=len(incoming),
                new_signals=len(new_signals),
                prior_signals=len(prior_signals),
                has_soul=soul is not None,
            )

            scratch = pipeline.new_store()
            await pipeline.cluster(scratch, new_signals)
            decision = decide_cycle_mode(
                soul,
                scratch.get_principles(),
                settings.cycle_thresholds(hierarchy_changed),
                force=force,
            )
            logger.info(
                "cycle.mode_selected",
                mode=decision.mode,
                reason=decision.reason,
                triggers=decision.triggers,
            )

            evidence = _merge_signals(prior_signals, incoming)
            missing = _missing_evidence(soul, evidence) if soul is not None else set()

            if decision.mode == "incremental" and soul is not None:
                synthesis = await pipeline.run(new_signals, seed_principles=soul.principles)
            elif soul is not None and missing:
                logger.warning(
                    "cycle.prior_signals_unrecoverable",
                    missing=len(missing),
                    recovered=len(evidence),
                )
                synthesis = await pipeline.run(evidence, seed_principles=soul.principles)
            else:
                synthesis = await pipeline.run(evidence)

            if soul is None:
                next_soul = create_soul(synthesis.axioms, synthesis.principles)
            else:
                next_soul = update_soul(soul, synthesis.axioms, synthesis.principles)

            persisted = False
            if not dry_run:
                save_synthesis_data(
                    workspace,
                    evidence,
                    synthesis.principles,
                    synthesis.axioms,
                    dir_name=dir_name,
                )
                save_soul(workspace, next_soul, dir_name=dir_name)
                persisted = True

            new_count, merged_count = _principle_stats(soul, synthesis)
            stats = CycleStats(
                new_principles=new_count,
                merged_principles=merged_count,
                axiom_changes=_axiom_changes(soul, next_soul),
                persisted=persisted,
            )
            logger.info(
                "cycle.completed",
                mode=decision.mode,
                cycle_count=next_soul.cycle_count,
                axioms=len(next_soul.axioms),
                new_principles=stats.new_principles,
                merged_principles=stats.merged_principles,
                axiom_changes=stats.axiom_changes,
                dry_run=dry_run,
            )

            return CycleSynthesisResult(
                mode=decision.mode,
                decision=decision,
                soul=next_soul,
                synthesis=synthesis,
                stats=stats,
            )


__all__ = ["CycleStats", "CycleSynthesisResult", "run_cycle"]
