"""Synthesis settings for axiom-spine.

Every tunable of the engine lives on one ``SynthesisSettings`` model so a
run can be reproduced from its configuration alone.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not mid-run
    - **Environment-driven:** Reads ``AXIOM_SPINE_*`` env vars and ``.env``
    - **Workspace-local:** ``<workspace>/.axiom-spine/config.json`` overrides defaults
    - **Sensible defaults:** Works out of the box

Precedence (highest first): explicit keyword overrides, environment
variables, workspace ``config.json``, field defaults.

Examples:
    >>> from axiom_spine.core.settings import SynthesisSettings
    >>> settings = SynthesisSettings(match_threshold=0.8)
    >>> settings.promotion_criteria().min_provenance_diversity
    2
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from axiom_spine.core.errors import InvalidConfigError, is_transient
from axiom_spine.core.logging import configure_logging, get_logger
from axiom_spine.core.models import CycleThresholds, PromotionCriteria
from axiom_spine.execution.retry import ExponentialBackoff

logger = get_logger(__name__)

CONFIG_FILE = "config.json"
RECOMMENDED_MATCH_BAND = (0.7, 0.85)


class SynthesisSettings(BaseSettings):
    """All engine tunables.

    Fields
    ──────
    match_threshold              : Matcher confidence needed to reinforce
    min_principle_count          : Gate rule 1 (n_count floor)
    min_provenance_diversity     : Gate rule 2 (distinct provenance types)
    require_external_or_questioning : Gate rule 3 toggle
    cognitive_load_cap           : Max axioms kept after compression
    cascade_thresholds           : N-thresholds tried strictest first
    min_axiom_target             : Cascade stops at the first threshold reaching this
    tension_axiom_cap            : Tension detection skipped above this many axioms
    tension_concurrency          : Pairs evaluated per batch
    generalize_signals           : Rewrite signal text as abstract principles before clustering
    generalization_model         : Model name recorded in generalization provenance
    classify_concurrency         : Signals classified per batch
    match_batch_size             : Candidates per batch matcher prompt
    new_principle_ratio          : Cycle trigger on novel-principle ratio
    contradiction_count          : Cycle trigger on contradiction count
    retry_max_attempts / retry_base_delay : Transient retry policy
    call_timeout_seconds         : Deadline per classifier call
    """

    model_config = SettingsConfigDict(
        env_prefix="AXIOM_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Matching ─────────────────────────────────────────────────
    match_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    match_batch_size: int = Field(default=20, ge=1)

    # ── Promotion gate ───────────────────────────────────────────
    min_principle_count: int = Field(default=3, ge=1)
    min_provenance_diversity: int = Field(default=2, ge=1)
    require_external_or_questioning: bool = True

    # ── Compression ──────────────────────────────────────────────
    cognitive_load_cap: int = Field(default=25, ge=1)
    cascade_thresholds: list[int] = Field(default_factory=lambda: [3, 2, 1])
    min_axiom_target: int = Field(default=3, ge=1)

    # ── Tension detection ────────────────────────────────────────
    tension_axiom_cap: int = Field(default=25, ge=0)
    tension_concurrency: int = Field(default=5, ge=1)

    # ── Generalization ───────────────────────────────────────────
    generalize_signals: bool = True
    generalization_model: str = "unknown"

    # ── Fan-out ──────────────────────────────────────────────────
    classify_concurrency: int = Field(default=10, ge=1)

    # ── Cycle detection ──────────────────────────────────────────
    new_principle_ratio: float = Field(default=0.3, ge=0.0)
    contradiction_count: int = Field(default=2, ge=1)

    # ── Resilience ───────────────────────────────────────────────
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0.0)
    call_timeout_seconds: float = Field(default=60.0, gt=0.0)

    # ── Observability / storage ──────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    state_dir_name: str = ".axiom-spine"

    @field_validator("cascade_thresholds")
    @classmethod
    def _strictest_first(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("cascade_thresholds must not be empty")
        if any(t < 1 for t in value):
            raise ValueError("cascade thresholds must be >= 1")
        return sorted(set(value), reverse=True)

    @field_validator("match_threshold")
    @classmethod
    def _warn_outside_band(cls, value: float) -> float:
        low, high = RECOMMENDED_MATCH_BAND
        if not low <= value <= high:
            logger.warning(
                "settings.match_threshold_outside_band",
                match_threshold=value,
                recommended_low=low,
                recommended_high=high,
            )
        return value

    # ── Derived views ────────────────────────────────────────────

    def promotion_criteria(self) -> PromotionCriteria:
        return PromotionCriteria(
            min_principle_count=self.min_principle_count,
            min_provenance_diversity=self.min_provenance_diversity,
            require_external_or_questioning=self.require_external_or_questioning,
        )

    def cycle_thresholds(self, hierarchy_changed: bool = False) -> CycleThresholds:
        return CycleThresholds(
            new_principle_ratio=self.new_principle_ratio,
            contradiction_count=self.contradiction_count,
            hierarchy_changed=hierarchy_changed,
        )

    def retry_strategy(self) -> ExponentialBackoff:
        """Backoff for transient classifier failures (base x2)."""
        return ExponentialBackoff(
            max_retries=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            multiplier=2.0,
            retry_if=is_transient,
        )

    def state_dir(self, workspace: str | Path) -> Path:
        return Path(workspace) / self.state_dir_name

    def configure_logging(self, service: str = "axiom-spine") -> None:
        """Apply ``log_level`` and ``log_json`` to the structlog pipeline."""
        configure_logging(level=self.log_level, json_format=self.log_json, service=service)


def load_settings(workspace: str | Path | None = None, **overrides: Any) -> SynthesisSettings:
    """Build settings from the workspace config file, env vars, and overrides.

    Raises:
        InvalidConfigError: If ``config.json`` is unreadable or fails validation.
    """
    file_values: dict[str, Any] = {}
    state_dir_name = overrides.get("state_dir_name", ".axiom-spine")

    if workspace is not None:
        config_path = Path(workspace) / state_dir_name / CONFIG_FILE
        if config_path.exists():
            try:
                file_values = json.loads(config_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise InvalidConfigError(
                    f"Failed to parse config at {config_path}: {e}", cause=e
                ) from e
            if not isinstance(file_values, dict):
                raise InvalidConfigError(f"Config at {config_path} must be a JSON object")

    try:
        # Environment variables beat the file; explicit overrides beat both.
        env_set = SynthesisSettings().model_fields_set
        merged = {k: v for k, v in file_values.items() if k not in env_set}
        merged.update(overrides)
        return SynthesisSettings(**merged)
    except ValidationError as e:
        issues = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidConfigError(f"Invalid configuration:\n{issues}", cause=e) from e


__all__ = ["SynthesisSettings", "load_settings", "CONFIG_FILE"]
