"""Tests for atomic state persistence."""

import json

import pytest

from axiom_spine.core.errors import StorageError
from axiom_spine.core.models import Soul
from axiom_spine.cycle.manager import decide_cycle_mode
from axiom_spine.cycle.persistence import (
    SOUL_FILE,
    load_axioms,
    load_principles,
    load_signals,
    load_soul,
    load_synthesis_data,
    save_principles,
    save_signals,
    save_soul,
    save_synthesis_data,
    state_dir,
    write_atomic,
)


class TestWriteAtomic:
    def test_writes_and_leaves_no_temp(self, tmp_path):
        target = tmp_path / "out.json"
        write_atomic(target, "{}")
        write_atomic(target, '{"v": 2}')
        assert json.loads(target.read_text()) == {"v": 2}
        assert [p.name for p in tmp_path.iterdir()] == ["out.json"]

    def test_failure_raises_storage_error(self, tmp_path):
        with pytest.raises(StorageError):
            write_atomic(tmp_path / "missing" / "out.json", "{}")


class TestSoul:
    """Soul round trip and invalid-state recovery."""

    def test_round_trip(self, workspace, make_principle):
        soul = Soul(principles=[make_principle("honesty: truth", n=2)], cycle_count=3)
        path = save_soul(workspace, soul)
        assert path == state_dir(workspace) / SOUL_FILE
        assert load_soul(workspace) == soul

    def test_missing_is_none(self, workspace):
        assert load_soul(workspace) is None

    def test_schema_invalid_is_none(self, workspace):
        directory = state_dir(workspace)
        directory.mkdir()
        (directory / SOUL_FILE).write_text(json.dumps({"cycle_count": 0}))
        assert load_soul(workspace) is None

    def test_corrupt_json_is_none(self, workspace):
        directory = state_dir(workspace)
        directory.mkdir()
        (directory / SOUL_FILE).write_text("{truncated")
        assert load_soul(workspace) is None

    def test_invalid_soul_leads_to_initial_mode(self, workspace):
        directory = state_dir(workspace)
        directory.mkdir()
        (directory / SOUL_FILE).write_text('{"axioms": "nope"}')
        assert decide_cycle_mode(load_soul(workspace), []).mode == "initial"

    def test_custom_dir_name(self, workspace):
        save_soul(workspace, Soul(), dir_name=".state")
        assert (workspace / ".state" / SOUL_FILE).exists()
        assert load_soul(workspace) is None
        assert load_soul(workspace, dir_name=".state") is not None


class TestCollections:
    def test_round_trip(self, workspace, make_signal, make_principle):
        signals = [make_signal("honesty: a"), make_signal("curiosity: b", provenance="external")]
        principles = [make_principle("honesty: a", n=2)]
        save_signals(workspace, signals)
        save_principles(workspace, principles)
        assert load_signals(workspace) == signals
        assert load_principles(workspace) == principles
        assert load_axioms(workspace) == []

    def test_invalid_collection_is_empty(self, workspace):
        directory = state_dir(workspace)
        directory.mkdir()
        (directory / "signals.json").write_text('[{"id": 1}]')
        assert load_signals(workspace) == []

    def test_unicode_preserved(self, workspace, make_signal):
        save_signals(workspace, [make_signal("誠: 正直")])
        raw = (state_dir(workspace) / "signals.json").read_text(encoding="utf-8")
        assert "誠" in raw


class TestSynthesisData:
    def test_empty_is_none(self, workspace):
        assert load_synthesis_data(workspace) is None

    def test_aggregate(self, workspace, make_signal, make_principle):
        signals = [make_signal("honesty: a")]
        principles = [make_principle("honesty: a")]
        save_synthesis_data(workspace, signals, principles, [])
        save_soul(workspace, Soul(principles=principles))

        data = load_synthesis_data(workspace)
        assert data.signals == signals
        assert data.metrics.signal_count == 1
        assert data.metrics.principle_count == 1
        assert data.metrics.dimension_coverage == 0.0
        assert data.timestamp == load_soul(workspace).updated_at
