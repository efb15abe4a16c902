"""Atomic JSON persistence for synthesis state.

Layout under ``<workspace>/.axiom-spine/``::

    soul-state.json   Soul aggregate (schema-validated on load)
    signals.json      classified signals
    principles.json   principles with provenance
    axioms.json       axioms with provenance and tensions
    synthesis.lock    see cycle.lock

Every write goes to a ``.tmp-<uuid>`` file in the same directory and is
moved into place with ``os.replace``; the temp file is removed if the
write fails. Loads never raise on bad content: an unreadable or invalid
soul is ``None`` and an invalid collection is ``[]``, each with a warning.
"""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from axiom_spine.core.errors import StorageError
from axiom_spine.core.logging import get_logger
from axiom_spine.core.models import DIMENSIONS, Axiom, Principle, Signal, Soul
from axiom_spine.cycle.lock import TEMP_PREFIX

logger = get_logger(__name__)

STATE_DIR = ".axiom-spine"
SOUL_FILE = "soul-state.json"
SIGNALS_FILE = "signals.json"
PRINCIPLES_FILE = "principles.json"
AXIOMS_FILE = "axioms.json"

M = TypeVar("M", bound=BaseModel)


def state_dir(workspace: str | Path, name: str = STATE_DIR) -> Path:
    return Path(workspace) / name


def ensure_state_dir(workspace: str | Path, name: str = STATE_DIR) -> Path:
    directory = state_dir(workspace, name)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(f"Cannot create state directory {directory}", cause=e) from e
    return directory


def write_atomic(path: str | Path, content: str) -> None:
    """Write ``content`` to ``path`` via a same-directory temp file and rename."""
    target = Path(path)
    temp = target.parent / f"{TEMP_PREFIX}{uuid.uuid4().hex}"
    try:
        temp.write_text(content, encoding="utf-8")
        os.replace(temp, target)
    except OSError as e:
        temp.unlink(missing_ok=True)
        raise StorageError(f"Failed to write {target}: {e}", cause=e) from e


def _dump_list(items: Sequence[BaseModel]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items], indent=2, ensure_ascii=False)


# ── Soul ─────────────────────────────────────────────────────────────


def save_soul(workspace: str | Path, soul: Soul, *, dir_name: str = STATE_DIR) -> Path:
    path = ensure_state_dir(workspace, dir_name) / SOUL_FILE
    write_atomic(path, soul.model_dump_json(indent=2))
    logger.debug("persistence.soul_saved", path=str(path), cycle_count=soul.cycle_count)
    return path


def load_soul(workspace: str | Path, *, dir_name: str = STATE_DIR) -> Soul | None:
    path = state_dir(workspace, dir_name) / SOUL_FILE
    if not path.exists():
        return None
    try:
        return Soul.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        logger.warning(
            "persistence.soul_invalid",
            path=str(path),
            errors=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()][:10],
        )
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("persistence.soul_unreadable", path=str(path), error=str(e))
    return None


# ── Collections ──────────────────────────────────────────────────────


def _save_collection(
    workspace: str | Path, filename: str, items: Sequence[BaseModel], dir_name: str
) -> Path:
    path = ensure_state_dir(workspace, dir_name) / filename
    write_atomic(path, _dump_list(items))
    return path


def _load_collection(
    workspace: str | Path, filename: str, model: type[M], dir_name: str
) -> list[M]:
    path = state_dir(workspace, dir_name) / filename
    if not path.exists():
        return []
    try:
        return TypeAdapter(list[model]).validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, OSError, UnicodeDecodeError) as e:
        logger.warning("persistence.load_failed", path=str(path), error=str(e)[:500])
        return []


def save_signals(
    workspace: str | Path, signals: Sequence[Signal], *, dir_name: str = STATE_DIR
) -> Path:
    return _save_collection(workspace, SIGNALS_FILE, signals, dir_name)


def save_principles(
    workspace: str | Path, principles: Sequence[Principle], *, dir_name: str = STATE_DIR
) -> Path:
    return _save_collection(workspace, PRINCIPLES_FILE, principles, dir_name)


def save_axioms(
    workspace: str | Path, axioms: Sequence[Axiom], *, dir_name: str = STATE_DIR
) -> Path:
    return _save_collection(workspace, AXIOMS_FILE, axioms, dir_name)


def load_signals(workspace: str | Path, *, dir_name: str = STATE_DIR) -> list[Signal]:
    return _load_collection(workspace, SIGNALS_FILE, Signal, dir_name)


def load_principles(workspace: str | Path, *, dir_name: str = STATE_DIR) -> list[Principle]:
    return _load_collection(workspace, PRINCIPLES_FILE, Principle, dir_name)


def load_axioms(workspace: str | Path, *, dir_name: str = STATE_DIR) -> list[Axiom]:
    return _load_collection(workspace, AXIOMS_FILE, Axiom, dir_name)


# ── Aggregate ────────────────────────────────────────────────────────


class SynthesisDataMetrics(BaseModel):
    signal_count: int = 0
    principle_count: int = 0
    axiom_count: int = 0
    dimension_coverage: float = 0.0  # share of dimensions with at least one axiom


class SynthesisData(BaseModel):
    timestamp: str | None = None
    signals: list[Signal] = Field(default_factory=list)
    principles: list[Principle] = Field(default_factory=list)
    axioms: list[Axiom] = Field(default_factory=list)
    metrics: SynthesisDataMetrics = Field(default_factory=SynthesisDataMetrics)


def save_synthesis_data(
    workspace: str | Path,
    signals: Sequence[Signal],
    principles: Sequence[Principle],
    axioms: Sequence[Axiom],
    *,
    dir_name: str = STATE_DIR,
) -> None:
    """Write the three collections; each file is atomic, the set is not."""
    save_signals(workspace, signals, dir_name=dir_name)
    save_principles(workspace, principles, dir_name=dir_name)
    save_axioms(workspace, axioms, dir_name=dir_name)
    logger.info(
        "persistence.synthesis_saved",
        signals=len(signals),
        principles=len(principles),
        axioms=len(axioms),
    )


def load_synthesis_data(
    workspace: str | Path, *, dir_name: str = STATE_DIR
) -> SynthesisData | None:
    signals = load_signals(workspace, dir_name=dir_name)
    principles = load_principles(workspace, dir_name=dir_name)
    axioms = load_axioms(workspace, dir_name=dir_name)
    if not signals and not principles and not axioms:
        return None

    soul = load_soul(workspace, dir_name=dir_name)
    covered = {a.dimension for a in axioms}
    return SynthesisData(
        timestamp=soul.updated_at if soul else None,
        signals=signals,
        principles=principles,
        axioms=axioms,
        metrics=SynthesisDataMetrics(
            signal_count=len(signals),
            principle_count=len(principles),
            axiom_count=len(axioms),
            dimension_coverage=len(covered) / len(DIMENSIONS),
        ),
    )


__all__ = [
    "STATE_DIR",
    "SOUL_FILE",
    "SIGNALS_FILE",
    "PRINCIPLES_FILE",
    "AXIOMS_FILE",
    "state_dir",
    "ensure_state_dir",
    "write_atomic",
    "save_soul",
    "load_soul",
    "save_signals",
    "save_principles",
    "save_axioms",
    "load_signals",
    "load_principles",
    "load_axioms",
    "SynthesisData",
    "SynthesisDataMetrics",
    "save_synthesis_data",
    "load_synthesis_data",
]
