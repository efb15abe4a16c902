"""
Shared pytest fixtures for axiom-spine tests.

This module provides:
- Signal and principle factories with sensible defaults
- Classifier mocks (scripted and concept-keyed)
- A zero-delay retry strategy so transient-failure tests run instantly
- Temporary workspaces for persistence and cycle tests

Usage:
    def test_something(make_signal, llm):
        signal = make_signal("honesty: I tell the truth")
"""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Ensure axiom_spine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from axiom_spine.core.errors import is_transient
from axiom_spine.core.models import Principle, Signal, SignalDraft, SignalSource
from axiom_spine.execution.retry import ExponentialBackoff
from axiom_spine.llm.mock import MockClassifier
from tests._support.factories import _ids, build_principle, build_signal
from tests._support.semantic import concept_llm


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_signal() -> Callable[..., Signal]:
    return build_signal


@pytest.fixture
def make_draft() -> Callable[..., SignalDraft]:
    def _make(text: str, *, id: str | None = None, **attributes) -> SignalDraft:
        return SignalDraft(
            id=id or f"draft_{next(_ids)}",
            text=text,
            confidence=0.8,
            source=SignalSource(type="interview", file="interview.md"),
            **attributes,
        )

    return _make


@pytest.fixture
def make_principle() -> Callable[..., Principle]:
    return build_principle


# =============================================================================
# Classifier fixtures
# =============================================================================


@pytest.fixture
def fast_retry() -> ExponentialBackoff:
    """Three attempts, no waiting."""
    return ExponentialBackoff(
        max_retries=3, base_delay=0.0, multiplier=2.0, retry_if=is_transient
    )


@pytest.fixture
def mock_llm() -> MockClassifier:
    return MockClassifier()


@pytest.fixture
def llm() -> MockClassifier:
    """Concept-keyed classifier: ``"<concept>: ..."`` texts match by concept."""
    return concept_llm()


# =============================================================================
# Filesystem
# =============================================================================


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws
