"""Synthesis: signals → principles → axioms."""

from axiom_spine.synthesis.classifier import SignalClassifier
from axiom_spine.synthesis.compressor import (
    CascadeCompressionResult,
    Compressor,
    can_promote,
    determine_tier,
)
from axiom_spine.synthesis.generalizer import GeneralizedSignal, SignalGeneralizer
from axiom_spine.synthesis.guardrails import GuardrailWarnings, check_guardrails
from axiom_spine.synthesis.matcher import MatchResult, SemanticMatcher
from axiom_spine.synthesis.metrics import calculate_metrics, format_metrics_report
from axiom_spine.synthesis.pipeline import (
    SynthesisPipeline,
    SynthesisResult,
    format_synthesis_report,
)
from axiom_spine.synthesis.principle_store import AddSignalResult, PrincipleStore
from axiom_spine.synthesis.provenance import ProvenanceChain, trace_to_source
from axiom_spine.synthesis.tensions import TensionDetector, attach_tensions

__all__ = [
    "SemanticMatcher",
    "MatchResult",
    "SignalClassifier",
    "SignalGeneralizer",
    "GeneralizedSignal",
    "PrincipleStore",
    "AddSignalResult",
    "Compressor",
    "CascadeCompressionResult",
    "can_promote",
    "determine_tier",
    "GuardrailWarnings",
    "check_guardrails",
    "TensionDetector",
    "attach_tensions",
    "ProvenanceChain",
    "trace_to_source",
    "calculate_metrics",
    "format_metrics_report",
    "SynthesisPipeline",
    "SynthesisResult",
    "format_synthesis_report",
]
