"""Classifier provider protocol, resilient call helpers, and test mock."""

from axiom_spine.llm.calls import classify_text, generate_text
from axiom_spine.llm.mock import MockClassifier
from axiom_spine.llm.protocol import (
    ClassificationResult,
    ClassifierProvider,
    GenerationResult,
    require_classifier,
)

__all__ = [
    "ClassifierProvider",
    "ClassificationResult",
    "GenerationResult",
    "require_classifier",
    "generate_text",
    "classify_text",
    "MockClassifier",
]
