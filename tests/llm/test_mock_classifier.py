"""Tests for the classifier protocol and MockClassifier."""

import pytest

from axiom_spine.core.errors import ClassifierRequiredError, RateLimitError
from axiom_spine.llm.mock import MockClassifier
from axiom_spine.llm.protocol import (
    ClassificationResult,
    ClassifierProvider,
    model_id_of,
    require_classifier,
)


class TestProtocol:
    def test_mock_satisfies_protocol(self):
        assert isinstance(MockClassifier(), ClassifierProvider)

    def test_require_classifier_missing(self):
        with pytest.raises(ClassifierRequiredError, match="detect_tensions"):
            require_classifier(None, "detect_tensions")

    def test_require_classifier_present(self):
        llm = MockClassifier()
        assert require_classifier(llm, "x") is llm

    def test_model_id_of(self):
        assert model_id_of(MockClassifier(model_id="m-1")) == "m-1"
        assert model_id_of(None) is None

    def test_unparsed_result(self):
        result = ClassificationResult.unparsed("gibberish")
        assert result.category is None
        assert result.confidence == 0.0


class TestMockGenerate:
    """generate() resolution order."""

    @pytest.mark.asyncio
    async def test_default_text(self):
        assert (await MockClassifier().generate("anything")).text == "none"

    @pytest.mark.asyncio
    async def test_substring_responses(self):
        llm = MockClassifier(generate_responses={"conflict": "they clash"})
        assert (await llm.generate("do these conflict?")).text == "they clash"

    @pytest.mark.asyncio
    async def test_sequence_then_default(self):
        llm = MockClassifier(generate_sequence=["a", "b"], default_text="z")
        texts = [(await llm.generate("p")).text for _ in range(3)]
        assert texts == ["a", "b", "z"]

    @pytest.mark.asyncio
    async def test_handler_wins(self):
        llm = MockClassifier(
            generate_handler=lambda p: p.upper(), generate_responses={"x": "nope"}
        )
        assert (await llm.generate("x")).text == "X"

    @pytest.mark.asyncio
    async def test_errors_raised_first(self):
        llm = MockClassifier(errors=[RateLimitError()], default_text="ok")
        with pytest.raises(RateLimitError):
            await llm.generate("p")
        assert (await llm.generate("p")).text == "ok"
        assert llm.call_count == 2


class TestMockClassify:
    """classify() resolution order."""

    @pytest.mark.asyncio
    async def test_first_category_by_default(self):
        result = await MockClassifier().classify("p", ["core", "supporting"])
        assert result.category == "core"
        assert result.confidence == 0.9

    @pytest.mark.asyncio
    async def test_unknown_category_is_unparsed(self):
        llm = MockClassifier(classify_sequence=["bogus", "supporting"])
        first = await llm.classify("p", ["core", "supporting"])
        second = await llm.classify("p", ["core", "supporting"])
        assert first.category is None
        assert first.reasoning == "bogus"
        assert second.category == "supporting"

    @pytest.mark.asyncio
    async def test_responses_by_substring(self):
        llm = MockClassifier(classify_responses={"importance": "peripheral"})
        result = await llm.classify("rate the importance", ["core", "peripheral"])
        assert result.category == "peripheral"

    @pytest.mark.asyncio
    async def test_call_tracking_and_reset(self):
        llm = MockClassifier(classify_sequence=["core"])
        await llm.classify("p", ["core"], context="ctx")
        await llm.generate("g")
        assert llm.calls_for("classify")[0]["context"] == "ctx"
        assert len(llm.calls_for("generate")) == 1
        llm.reset()
        assert llm.call_count == 0
