"""Compression guardrails.

Observability checks on a compression result. They never block or
change the output: each tripped check is a message that travels with the
result and is logged as a warning.

    ===============  =====================================================
    check            trips when
    ===============  =====================================================
    expansion        axioms > signals
    cognitive load   axioms > min(signals × 0.5, 30)
    fallback         the cascade settled on threshold 1
    ===============  =====================================================
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from axiom_spine.core.logging import get_logger

logger = get_logger(__name__)

GUARDRAIL_LOAD_CAP = 30


class GuardrailWarnings(BaseModel):
    expansion_warning: bool = False
    cognitive_load_warning: bool = False
    fallback_warning: bool = False
    messages: list[str] = Field(default_factory=list)

    @property
    def tripped(self) -> bool:
        return bool(self.messages)


def check_guardrails(
    axiom_count: int, signal_count: int, effective_threshold: int
) -> GuardrailWarnings:
    warnings = GuardrailWarnings()

    if axiom_count > signal_count:
        warnings.expansion_warning = True
        warnings.messages.append(
            f"[guardrail] Expansion instead of compression: "
            f"{axiom_count} axioms > {signal_count} signals"
        )

    load_limit = min(signal_count * 0.5, GUARDRAIL_LOAD_CAP)
    if axiom_count > load_limit:
        warnings.cognitive_load_warning = True
        warnings.messages.append(
            f"[guardrail] Exceeds cognitive load limits: {axiom_count} axioms > "
            f"{load_limit:.0f} limit (min(signals*0.5, {GUARDRAIL_LOAD_CAP}))"
        )

    if effective_threshold == 1:
        warnings.fallback_warning = True
        warnings.messages.append(
            "[guardrail] Fell back to minimum threshold (N>=1): sparse evidence in input"
        )

    for message in warnings.messages:
        logger.warning(
            "guardrails.tripped",
            message=message,
            axiom_count=axiom_count,
            signal_count=signal_count,
            effective_threshold=effective_threshold,
        )

    return warnings


__all__ = ["GuardrailWarnings", "check_guardrails", "GUARDRAIL_LOAD_CAP"]
