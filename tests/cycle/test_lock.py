"""Tests for the workspace synthesis lock."""

import os
import time

import pytest

from axiom_spine.core.errors import LockContentionError, StorageError
from axiom_spine.cycle import lock as lock_module
from axiom_spine.cycle.lock import SynthesisLock, is_process_alive, sweep_temp_files


@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / ".axiom-spine"


class TestAcquireRelease:
    def test_acquire_writes_pid(self, state_dir):
        lock = SynthesisLock(state_dir)
        lock.acquire()
        assert lock.held
        assert lock.path.read_text() == str(os.getpid())
        lock.release()
        assert not lock.path.exists()
        assert not lock.held

    def test_acquire_is_idempotent_for_holder(self, state_dir):
        lock = SynthesisLock(state_dir)
        lock.acquire()
        lock.acquire()
        lock.release()

    def test_release_without_acquire_is_noop(self, state_dir):
        SynthesisLock(state_dir).release()

    def test_released_on_exception(self, state_dir):
        lock = SynthesisLock(state_dir)
        with pytest.raises(RuntimeError):
            with lock:
                assert lock.path.exists()
                raise RuntimeError("boom")
        assert not lock.path.exists()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, state_dir):
        async with SynthesisLock(state_dir) as lock:
            assert lock.path.exists()
        assert not lock.path.exists()

    def test_missing_file_on_release_is_tolerated(self, state_dir):
        lock = SynthesisLock(state_dir)
        lock.acquire()
        lock.path.unlink()
        lock.release()
        assert not lock.held


class TestContention:
    """One holder at a time; dead holders are recovered."""

    def test_second_acquire_fails_while_holder_alive(self, state_dir):
        first = SynthesisLock(state_dir)
        first.acquire()
        second = SynthesisLock(state_dir)
        with pytest.raises(LockContentionError) as exc_info:
            second.acquire()
        assert exc_info.value.holder_pid == os.getpid()
        assert str(first.path) in str(exc_info.value)
        assert not second.held
        first.release()

    def test_stale_lock_removed(self, state_dir, monkeypatch):
        state_dir.mkdir()
        (state_dir / "synthesis.lock").write_text("999999")
        monkeypatch.setattr(lock_module, "is_process_alive", lambda pid: False)

        lock = SynthesisLock(state_dir)
        lock.acquire()
        assert lock.path.read_text() == str(os.getpid())
        lock.release()

    def test_unreadable_holder_is_contention(self, state_dir):
        state_dir.mkdir()
        (state_dir / "synthesis.lock").write_text("not-a-pid")
        with pytest.raises(LockContentionError, match="PID: unknown"):
            SynthesisLock(state_dir).acquire()

    def test_contention_leaves_holder_temp_files(self, state_dir):
        holder = SynthesisLock(state_dir)
        holder.acquire()
        in_flight = state_dir / ".tmp-inflight"
        in_flight.write_text("partial")

        with pytest.raises(LockContentionError):
            SynthesisLock(state_dir).acquire()
        assert in_flight.exists()
        holder.release()

    def test_old_unreadable_lock_is_stale(self, state_dir):
        state_dir.mkdir()
        lock_path = state_dir / "synthesis.lock"
        lock_path.write_text("")
        old = time.time() - lock_module.UNREADABLE_GRACE_SECONDS - 5
        os.utime(lock_path, (old, old))

        lock = SynthesisLock(state_dir)
        lock.acquire()
        assert lock_path.read_text() == str(os.getpid())
        lock.release()

    def test_no_lock_temp_files_left(self, state_dir):
        with SynthesisLock(state_dir):
            assert [p.name for p in state_dir.iterdir()] == ["synthesis.lock"]

    def test_state_dir_not_creatable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        with pytest.raises(StorageError):
            SynthesisLock(blocker / "state").acquire()


class TestHelpers:
    def test_current_process_alive(self):
        assert is_process_alive(os.getpid())

    def test_dead_process(self, monkeypatch):
        def kill(pid, sig):
            raise ProcessLookupError()

        monkeypatch.setattr(lock_module.os, "kill", kill)
        assert is_process_alive(12345) is False

    def test_other_users_process_counts_as_alive(self, monkeypatch):
        def kill(pid, sig):
            raise PermissionError()

        monkeypatch.setattr(lock_module.os, "kill", kill)
        assert is_process_alive(1) is True

    def test_sweep_temp_files(self, state_dir):
        state_dir.mkdir()
        (state_dir / ".tmp-abc").write_text("partial")
        (state_dir / ".tmp-def").write_text("partial")
        (state_dir / "soul-state.json").write_text("{}")
        assert sweep_temp_files(state_dir) == 2
        assert [p.name for p in state_dir.iterdir()] == ["soul-state.json"]

    def test_sweep_missing_dir(self, tmp_path):
        assert sweep_temp_files(tmp_path / "nope") == 0

    def test_acquire_sweeps_temp_files(self, state_dir):
        state_dir.mkdir()
        (state_dir / ".tmp-orphan").write_text("partial")
        with SynthesisLock(state_dir):
            assert not (state_dir / ".tmp-orphan").exists()
