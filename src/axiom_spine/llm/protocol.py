"""Classifier Provider Protocol — the engine's only view of a language model.

Manifesto:
Semantic matching, attribute classification, notation generation, and
tension detection all need a model, but the engine must not care which
one. ``ClassifierProvider`` is the single injected dependency; the engine
never constructs it and never degrades to keyword matching when it is
missing. A missing provider is an explicit ``ClassifierRequiredError``.

ARCHITECTURE
────────────
::

    ClassifierProvider (Protocol, async)
      ├── .classify(prompt, categories, context=None) → ClassificationResult
      └── .generate(prompt)                           → GenerationResult

    ClassificationResult(category | None, confidence, reasoning)
      category is None when the model's answer was not one of the
      offered categories; confidence is then 0.
    GenerationResult(text)

Related modules:
    mock.py     — MockClassifier for tests and dry runs

Example::

    class OllamaClassifier:
        model_id = "llama3"

        async def classify(self, prompt, categories, context=None):
            ...
            return ClassificationResult(category="core", confidence=0.8)

        async def generate(self, prompt):
            ...
            return GenerationResult(text="none")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from axiom_spine.core.errors import ClassifierRequiredError


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of a constrained classification request.

    Attributes:
        category: One of the offered categories, or None if unparseable.
        confidence: Score in [0, 1]; 0 when category is None.
        reasoning: Optional explanation from the model.
    """

    category: str | None
    confidence: float = 0.0
    reasoning: str | None = None

    @classmethod
    def unparsed(cls, reasoning: str | None = None) -> ClassificationResult:
        """Result for an answer outside the offered categories."""
        return cls(category=None, confidence=0.0, reasoning=reasoning)


@dataclass(frozen=True)
class GenerationResult:
    """Free-text output of a generation request."""

    text: str


@runtime_checkable
class ClassifierProvider(Protocol):
    """Protocol for classifier backends.

    Implementations own their transport; retries, deadlines, and response
    parsing happen on the engine side. Providers may expose a ``model_id``
    attribute for provenance and logging.
    """

    async def classify(
        self,
        prompt: str,
        categories: Sequence[str],
        context: str | None = None,
    ) -> ClassificationResult:
        """Pick one of ``categories`` for ``prompt``."""
        ...

    async def generate(self, prompt: str) -> GenerationResult:
        """Generate free text for ``prompt``."""
        ...


def require_classifier(
    llm: ClassifierProvider | None, operation: str
) -> ClassifierProvider:
    """Return ``llm`` or raise ``ClassifierRequiredError`` naming ``operation``."""
    if llm is None:
        raise ClassifierRequiredError(operation)
    return llm


def model_id_of(llm: ClassifierProvider | None) -> str | None:
    """Model identifier advertised by ``llm``, if any."""
    if llm is None:
        return None
    model_id = getattr(llm, "model_id", None)
    return str(model_id) if model_id else None
