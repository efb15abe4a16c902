"""
axiom-spine - semantic clustering and promotion engine.

Turns atomic observations (signals) into reinforced clusters
(principles), promotes well-evidenced principles into tiered axioms under
an anti-echo-chamber gate and a cognitive-load cap, detects tensions
between axioms, and carries the result across runs.

Subpackages:
- axiom_spine.core: errors, logging, settings, data model
- axiom_spine.execution: retry, deadlines, bounded fan-out
- axiom_spine.llm: classifier protocol and mock
- axiom_spine.synthesis: matcher, store, compressor, tensions, pipeline
- axiom_spine.cycle: mode decision, lock, persistence, runner
"""

__version__ = "0.1.0"
