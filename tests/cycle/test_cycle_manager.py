"""Tests for cycle mode decisions and soul snapshots."""

import pytest

from axiom_spine.core.models import (
    Axiom,
    AxiomPrincipleRef,
    AxiomProvenance,
    CanonicalForm,
    CycleThresholds,
    Soul,
)
from axiom_spine.cycle.manager import (
    count_new_principles,
    create_soul,
    decide_cycle_mode,
    detect_contradictions,
    format_cycle_decision,
    has_negation,
    jaccard_similarity,
    tokenize,
    update_soul,
)
from tests._support.factories import build_principle


def _axiom(text, index=0):
    return Axiom(
        id=f"ax_{index}",
        text=text,
        tier="domain",
        dimension="identity-core",
        canonical=CanonicalForm(native=text, notated=text),
        derived_from=AxiomProvenance(
            principles=[AxiomPrincipleRef(id=f"pri_{index}", text=text, n_count=3)]
        ),
    )


def _existing(count=10):
    return [build_principle(f"core value number {i}", n=1) for i in range(count)]


def _novel(count):
    return [build_principle(f"fresh{i} insight{i}", n=1) for i in range(count)]


class TestTextHelpers:
    def test_tokenize_strips_punctuation(self):
        assert tokenize("I don't, really!") == {"i", "dont", "really"}

    def test_jaccard(self):
        assert jaccard_similarity("a b c", "a b d") == pytest.approx(2 / 4)
        assert jaccard_similarity("", "") == 1.0
        assert jaccard_similarity("a", "") == 0.0

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("I never lie", True),
            ("Don't interrupt", True),
            ("Honesty except when cruel", True),
            ("Nothing is certain", False),
            ("I value candor", False),
        ],
    )
    def test_has_negation(self, text, expected):
        assert has_negation(text) is expected

    def test_count_new_principles(self):
        existing = _existing(3)
        candidates = [build_principle("core value number 1"), *_novel(2)]
        assert count_new_principles(existing, candidates) == 2

    def test_detect_contradictions(self):
        axioms = [_axiom("I value honest feedback always")]
        principles = [
            build_principle("I never value honest feedback always"),
            build_principle("I value honest feedback always"),
            build_principle("completely unrelated statement"),
        ]
        found = detect_contradictions(axioms, principles)
        assert [p.text for _, p in found] == ["I never value honest feedback always"]


class TestDecideCycleMode:
    """Decision order: force, initial, triggers, incremental."""

    def test_force_overrides(self):
        decision = decide_cycle_mode(None, [], force=True)
        assert decision.mode == "full-resynthesis"
        assert decision.reason == "Manual override"
        assert decision.triggers == ["force flag set"]

    def test_no_soul_is_initial(self):
        decision = decide_cycle_mode(None, _novel(5))
        assert decision.mode == "initial"
        assert decision.reason == "No existing soul state"

    def test_novelty_above_ratio(self):
        soul = Soul(principles=_existing(10))
        decision = decide_cycle_mode(soul, _novel(4))
        assert decision.mode == "full-resynthesis"
        assert decision.reason == "Significant changes detected"
        assert decision.triggers == ["New principles (40%) exceed threshold (30%)"]

    def test_novelty_below_ratio_is_incremental(self):
        soul = Soul(principles=_existing(10))
        decision = decide_cycle_mode(soul, _novel(2))
        assert decision.mode == "incremental"
        assert decision.reason == "Merge new principles into existing soul"
        assert decision.triggers == []

    def test_known_principles_are_not_novel(self):
        existing = _existing(10)
        soul = Soul(principles=existing)
        repeats = [build_principle(p.text) for p in existing[:6]]
        assert decide_cycle_mode(soul, repeats).mode == "incremental"

    def test_contradictions_trigger(self):
        soul = Soul(
            principles=_existing(10),
            axioms=[
                _axiom("I value honest feedback always", 0),
                _axiom("I share credit with my team", 1),
            ],
        )
        new = [
            build_principle("I never value honest feedback always"),
            build_principle("I never share credit with my team"),
        ]
        decision = decide_cycle_mode(soul, new)
        assert decision.mode == "full-resynthesis"
        assert "2 axioms contradicted by new evidence" in decision.triggers

    def test_single_contradiction_below_threshold(self):
        soul = Soul(principles=_existing(10), axioms=[_axiom("I value honest feedback always")])
        new = [build_principle("I never value honest feedback always")]
        assert decide_cycle_mode(soul, new).mode == "incremental"

    def test_hierarchy_flag(self):
        soul = Soul(principles=_existing(10))
        decision = decide_cycle_mode(soul, [], CycleThresholds(hierarchy_changed=True))
        assert decision.triggers == ["Axiom hierarchy has changed"]

    def test_empty_soul_skips_ratio(self):
        assert decide_cycle_mode(Soul(), _novel(5)).mode == "incremental"

    def test_format(self):
        text = format_cycle_decision(decide_cycle_mode(None, [], force=True))
        assert text.splitlines() == [
            "Mode: full-resynthesis",
            "Reason: Manual override",
            "Triggers:",
            "  - force flag set",
        ]


class TestSoulSnapshots:
    def test_create(self):
        soul = create_soul([_axiom("a")], _existing(2))
        assert soul.cycle_count == 1
        assert len(soul.axioms) == 1
        assert len(soul.principles) == 2

    def test_update_keeps_id_and_increments(self):
        soul = create_soul([], [])
        updated = update_soul(soul, [_axiom("b")], _existing(1))
        assert updated.id == soul.id
        assert updated.cycle_count == 2
        assert updated.updated_at >= soul.updated_at
        assert soul.cycle_count == 1
        assert soul.axioms == []
