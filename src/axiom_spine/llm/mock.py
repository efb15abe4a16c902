"""Mock Classifier — deterministic provider for tests and dry runs.

Manifesto:
Exercising the engine should not need a network or a model. The mock
answers from canned maps, scripted sequences, or a handler function, and
records every call so tests can assert on prompts and call counts.

ARCHITECTURE
────────────
::

    MockClassifier
      ├── .classify(prompt, categories) → ClassificationResult
      ├── .generate(prompt)             → GenerationResult
      ├── .calls / .call_count          → call tracking
      └── .errors                       → exceptions raised first, in order

    generate resolution order:
      errors → generate_handler → generate_responses (substring)
             → generate_sequence → default_text
    classify resolution order:
      errors → classify_handler → classify_responses (substring)
             → classify_sequence → first offered category

Example::

    llm = MockClassifier(generate_responses={"conflict": "none"})
    result = await llm.generate("Do these two values conflict ...")
    assert result.text == "none"

    llm = MockClassifier(classify_sequence=["bogus", "core"])
    first = await llm.classify("...", ["core", "supporting"])
    assert first.category is None          # not an offered category
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from axiom_spine.llm.protocol import ClassificationResult, GenerationResult

ClassifyHandler = Callable[[str, Sequence[str]], "ClassificationResult | str | None"]


@dataclass
class MockClassifier:
    """Deterministic classifier provider.

    Attributes:
        default_text: Text returned by ``generate`` when nothing else matches.
        generate_responses: Prompt substring → generated text.
        generate_sequence: Generated texts consumed in order.
        generate_handler: ``prompt → text`` computed per call.
        classify_responses: Prompt substring → category.
        classify_sequence: Categories consumed in order (None = unparseable).
        classify_handler: ``(prompt, categories) → category | result``.
        default_confidence: Confidence attached to valid categories.
        errors: Exceptions raised by the next calls, in order.
        model_id: Fake model identifier.
    """

    default_text: str = "none"
    generate_responses: dict[str, str] = field(default_factory=dict)
    generate_sequence: list[str] = field(default_factory=list)
    generate_handler: Callable[[str], str] | None = None
    classify_responses: dict[str, str] = field(default_factory=dict)
    classify_sequence: list[str | None] = field(default_factory=list)
    classify_handler: ClassifyHandler | None = None
    default_confidence: float = 0.9
    errors: list[BaseException] = field(default_factory=list)
    model_id: str = "mock-classifier-v1"

    # Tracking
    calls: list[dict[str, Any]] = field(default_factory=list, repr=False)
    _generate_index: int = field(default=0, repr=False)
    _classify_index: int = field(default=0, repr=False)

    async def generate(self, prompt: str) -> GenerationResult:
        self.calls.append({"method": "generate", "prompt": prompt})
        self._raise_scripted_error()

        if self.generate_handler is not None:
            return GenerationResult(text=self.generate_handler(prompt))

        for key, response in self.generate_responses.items():
            if key in prompt:
                return GenerationResult(text=response)

        if self._generate_index < len(self.generate_sequence):
            text = self.generate_sequence[self._generate_index]
            self._generate_index += 1
            return GenerationResult(text=text)

        return GenerationResult(text=self.default_text)

    async def classify(
        self,
        prompt: str,
        categories: Sequence[str],
        context: str | None = None,
    ) -> ClassificationResult:
        self.calls.append({
            "method": "classify",
            "prompt": prompt,
            "categories": list(categories),
            "context": context,
        })
        self._raise_scripted_error()

        if self.classify_handler is not None:
            return self._to_result(self.classify_handler(prompt, categories), categories)

        for key, category in self.classify_responses.items():
            if key in prompt:
                return self._to_result(category, categories)

        if self._classify_index < len(self.classify_sequence):
            category = self.classify_sequence[self._classify_index]
            self._classify_index += 1
            return self._to_result(category, categories)

        return self._to_result(categories[0] if categories else None, categories)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_for(self, method: str) -> list[dict[str, Any]]:
        """Recorded calls of one method ("generate" or "classify")."""
        return [c for c in self.calls if c["method"] == method]

    def reset(self) -> None:
        """Reset call tracking and sequence positions."""
        self.calls.clear()
        self._generate_index = 0
        self._classify_index = 0

    def _raise_scripted_error(self) -> None:
        if self.errors:
            raise self.errors.pop(0)

    def _to_result(
        self,
        answer: ClassificationResult | str | None,
        categories: Sequence[str],
    ) -> ClassificationResult:
        if isinstance(answer, ClassificationResult):
            return answer
        if answer is None or answer not in categories:
            return ClassificationResult.unparsed(reasoning=answer)
        return ClassificationResult(category=answer, confidence=self.default_confidence)
