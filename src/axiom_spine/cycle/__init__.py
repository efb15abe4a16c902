"""Cross-run state: mode decision, advisory lock, persistence, runner."""

from axiom_spine.cycle.lock import SynthesisLock
from axiom_spine.cycle.manager import (
    CycleDecision,
    create_soul,
    decide_cycle_mode,
    format_cycle_decision,
    update_soul,
)
from axiom_spine.cycle.persistence import (
    load_soul,
    load_synthesis_data,
    save_soul,
    save_synthesis_data,
    write_atomic,
)
from axiom_spine.cycle.runner import CycleSynthesisResult, run_cycle

__all__ = [
    "CycleDecision",
    "decide_cycle_mode",
    "format_cycle_decision",
    "create_soul",
    "update_soul",
    "SynthesisLock",
    "write_atomic",
    "save_soul",
    "load_soul",
    "save_synthesis_data",
    "load_synthesis_data",
    "run_cycle",
    "CycleSynthesisResult",
]
