"""Single-writer advisory lock for a workspace.

The holder's pid is written to a private temp file which is then
hard-linked to the lock path. ``os.link`` fails if the lock already
exists, so acquisition is one atomic filesystem call and the lock file is
never visible half-written.

On contention the recorded pid is checked with ``os.kill(pid, 0)``:

    ProcessLookupError  → holder is dead: remove the lock, retry once
    PermissionError     → holder exists under another user: contention
    success             → holder alive: contention
    unreadable pid      → stale once older than UNREADABLE_GRACE_SECONDS

Orphaned ``.tmp-*`` files left by a crashed atomic write are removed only
after the lock has been taken, never while another holder may be writing.

Usage::

    with SynthesisLock(state_dir):
        ...

    async with SynthesisLock(state_dir):
        ...
"""

from __future__ import annotations

import os
import time
import uuid
from pathlib import Path

from axiom_spine.core.errors import LockContentionError, StorageError
from axiom_spine.core.logging import get_logger

logger = get_logger(__name__)

LOCK_FILE = "synthesis.lock"
TEMP_PREFIX = ".tmp-"
LOCK_TEMP_PREFIX = ".lock-"
UNREADABLE_GRACE_SECONDS = 30.0


def is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def sweep_temp_files(directory: Path) -> int:
    """Remove orphaned temp files; returns how many were removed."""
    removed = 0
    if not directory.is_dir():
        return removed
    for path in directory.glob(f"{TEMP_PREFIX}*"):
        try:
            path.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("cycle.temp_sweep_failed", path=str(path), error=str(e))
    if removed:
        logger.debug("cycle.temp_swept", removed=removed)
    return removed


class SynthesisLock:
    """PID lock file under the workspace state directory."""

    def __init__(self, state_dir: str | Path, filename: str = LOCK_FILE) -> None:
        self.state_dir = Path(state_dir)
        self.path = self.state_dir / filename
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _try_create(self) -> bool:
        temp = self.state_dir / f"{LOCK_TEMP_PREFIX}{os.getpid()}-{uuid.uuid4().hex[:8]}"
        try:
            temp.write_text(str(os.getpid()), encoding="utf-8")
            os.link(temp, self.path)
        except FileExistsError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot create lock file {self.path}", cause=e) from e
        finally:
            temp.unlink(missing_ok=True)
        return True

    def _read_holder(self) -> int | None:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def _is_stale(self, holder: int | None) -> bool:
        if holder is not None:
            return not is_process_alive(holder)
        # No readable pid: left by a writer that died mid-write, or one
        # that is still writing. Only age tells them apart.
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        return age > UNREADABLE_GRACE_SECONDS

    def acquire(self) -> None:
        """Take the lock or raise ``LockContentionError``."""
        if self._held:
            return
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create state directory {self.state_dir}", cause=e) from e

        for attempt in range(2):
            if self._try_create():
                self._held = True
                logger.info("cycle.lock_acquired", lock_path=str(self.path), pid=os.getpid())
                sweep_temp_files(self.state_dir)
                return

            holder = self._read_holder()
            if attempt == 0 and self._is_stale(holder):
                logger.info("cycle.lock_stale_removed", lock_path=str(self.path), pid=holder)
                self.path.unlink(missing_ok=True)
                continue

            raise LockContentionError(str(self.path), holder)

        raise LockContentionError(str(self.path), self._read_holder())

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
            logger.info("cycle.lock_released", lock_path=str(self.path))
        except FileNotFoundError:
            logger.warning("cycle.lock_missing_on_release", lock_path=str(self.path))

    def __enter__(self) -> SynthesisLock:
        self.acquire()
        return self

    def __exit__(self, *args) -> None:
        self.release()

    async def __aenter__(self) -> SynthesisLock:
        self.acquire()
        return self

    async def __aexit__(self, *args) -> None:
        self.release()


__all__ = ["SynthesisLock", "LOCK_FILE", "is_process_alive", "sweep_temp_files"]
