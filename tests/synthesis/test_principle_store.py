"""Tests for PrincipleStore clustering."""

import asyncio

import pytest

from axiom_spine.core.models import GeneralizationProvenance
from axiom_spine.synthesis.generalizer import PROMPT_VERSION, GeneralizedSignal
from axiom_spine.synthesis.matcher import SemanticMatcher
from axiom_spine.synthesis.principle_store import PrincipleStore, compute_centrality
from tests._support.semantic import concept_llm


@pytest.fixture
def store(llm, fast_retry):
    return PrincipleStore(SemanticMatcher(llm, retry=fast_retry), threshold=0.75)


class TestAddSignal:
    """Routing: create, reinforce, skip."""

    @pytest.mark.asyncio
    async def test_first_signal_creates_without_orphan(self, store, make_signal, llm):
        result = await store.add_signal(make_signal("honesty: I tell the truth"))
        assert result.action == "created"
        assert result.confidence == 1.0
        assert store.orphaned_signals == []
        assert llm.call_count == 0

    @pytest.mark.asyncio
    async def test_reinforcement(self, store, make_signal):
        first = await store.add_signal(make_signal("honesty: I tell the truth", confidence=0.8))
        second = await store.add_signal(
            make_signal("honesty: lying is wrong", importance="core", confidence=0.6)
        )
        assert second.action == "reinforced"
        assert second.principle_id == first.principle_id

        principle = store.get_principle(first.principle_id)
        assert principle.n_count == 2
        assert len(principle.derived_from.signals) == 2
        assert principle.strength == pytest.approx(0.8 + 0.6 * 0.1 * 1.5)
        assert principle.text == "honesty: I tell the truth"
        assert [e.type for e in principle.history] == ["created", "reinforced"]
        assert principle.derived_from.signals[1].similarity == 0.9

    @pytest.mark.asyncio
    async def test_unmatched_signal_is_orphan(self, store, make_signal):
        await store.add_signal(make_signal("honesty: truth"))
        result = await store.add_signal(make_signal("curiosity: learning"))
        assert result.action == "created"
        assert store.principle_count == 2
        [orphan] = store.orphaned_signals
        assert orphan.principle_id == result.principle_id
        assert orphan.best_confidence == 0.0

    @pytest.mark.asyncio
    async def test_below_threshold_creates(self, make_signal, fast_retry):
        store = PrincipleStore(
            SemanticMatcher(concept_llm(confidence="medium"), retry=fast_retry), threshold=0.75
        )
        await store.add_signal(make_signal("honesty: truth"))
        result = await store.add_signal(make_signal("honesty: candor"))
        assert result.action == "created"
        assert store.orphaned_signals[0].best_confidence == 0.7

    @pytest.mark.asyncio
    async def test_duplicate_signal_skipped(self, store, make_signal):
        signal = make_signal("honesty: truth")
        await store.add_signal(signal)
        result = await store.add_signal(signal)
        assert result.action == "skipped"
        assert store.get_principles()[0].n_count == 1

    @pytest.mark.asyncio
    async def test_strength_capped(self, store, make_signal):
        await store.add_signal(make_signal("honesty: a", confidence=1.0))
        for i in range(5):
            await store.add_signal(make_signal(f"honesty: b{i}", confidence=1.0, importance="core"))
        assert store.get_principles()[0].strength == 1.0

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_serialized(self, store, make_signal):
        signals = [make_signal(f"honesty: variant {i}") for i in range(6)]
        await asyncio.gather(*(store.add_signal(s) for s in signals))
        [principle] = store.get_principles()
        assert principle.n_count == 6


class TestInvariants:
    @pytest.mark.asyncio
    async def test_total_count_equals_signals(self, store, make_signal):
        texts = ["honesty: a", "curiosity: b", "honesty: c", "kindness: d", "curiosity: e"]
        await store.add_signals([make_signal(t) for t in texts])
        assert sum(p.n_count for p in store.get_principles()) == len(texts)
        assert all(p.n_count == len(p.derived_from.signals) for p in store.get_principles())
        assert sum(p.coverage_pct for p in store.get_principles()) == pytest.approx(100, abs=0.05)

    @pytest.mark.asyncio
    async def test_principles_above_n(self, store, make_signal):
        await store.add_signals(
            [make_signal(t) for t in ["honesty: a", "honesty: b", "curiosity: c"]]
        )
        assert len(store.get_principles_above_n(2)) == 1
        assert len(store.get_principles_above_n(1)) == 2


class TestSeedAndThreshold:
    @pytest.mark.asyncio
    async def test_seed_marks_signals_processed(self, llm, fast_retry, make_principle, make_signal):
        seed = make_principle("honesty: truth", n=2)
        store = PrincipleStore.from_principles(SemanticMatcher(llm, retry=fast_retry), [seed])
        assert set(seed.signal_ids) <= store.processed_signal_ids

        result = await store.add_signal(make_signal("honesty: candor"))
        assert result.action == "reinforced"
        assert seed.n_count == 2
        assert store.get_principle(seed.id).n_count == 3

    def test_set_threshold_validates(self, store):
        store.set_threshold(0.8)
        assert store.threshold == 0.8
        with pytest.raises(ValueError):
            store.set_threshold(1.2)


class TestCentrality:
    @pytest.mark.parametrize(
        "importance,expected",
        [("core", "defining"), ("supporting", "contextual")],
    )
    def test_from_importance(self, make_principle, importance, expected):
        assert compute_centrality(make_principle("x", n=3, importance=importance)) == expected


class TestGeneralizedSignals:
    """Clustering on generalized wording."""

    @staticmethod
    def _generalized(signal, text):
        return GeneralizedSignal(
            original=signal,
            text=text,
            provenance=GeneralizationProvenance(
                original_text=signal.text,
                generalized_text=text,
                prompt_version=PROMPT_VERSION,
            ),
        )

    @pytest.mark.asyncio
    async def test_principle_takes_generalized_text(self, store, make_signal):
        signal = make_signal("honesty: I told my manager the launch would slip")
        result = await store.add_generalized_signal(
            self._generalized(signal, "honesty: values candor about delays")
        )

        principle = store.get_principle(result.principle_id)
        assert principle.text == "honesty: values candor about delays"
        assert principle.derived_from.signals[0].original_text == signal.text
        generalization = principle.derived_from.generalization
        assert generalization.original_text == signal.text
        assert generalization.generalized_text == principle.text

    @pytest.mark.asyncio
    async def test_matches_on_generalized_text(self, store, make_signal):
        first = await store.add_generalized_signal(
            self._generalized(make_signal("a: raw one"), "honesty: values candor")
        )
        second = await store.add_generalized_signals(
            [self._generalized(make_signal("b: raw two"), "honesty: prefers truth")]
        )
        assert second[0].action == "reinforced"
        assert second[0].principle_id == first.principle_id
        assert store.get_principle(first.principle_id).coverage_pct == 100.0

    @pytest.mark.asyncio
    async def test_plain_signals_carry_no_generalization(self, store, make_signal):
        result = await store.add_signal(make_signal("honesty: plain"))
        assert store.get_principle(result.principle_id).derived_from.generalization is None
