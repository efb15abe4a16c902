"""Core primitives: errors, structured logging, settings, data model."""

from axiom_spine.core.errors import (
    AxiomSpineError,
    ClassifierRequiredError,
    ConfigError,
    ErrorCategory,
    InvalidConfigError,
    LockContentionError,
    StorageError,
    TransientError,
    is_transient,
)
from axiom_spine.core.logging import LogContext, configure_logging, get_logger
from axiom_spine.core.models import (
    Axiom,
    CycleThresholds,
    OrphanedSignal,
    Principle,
    PromotionCriteria,
    Signal,
    SignalDraft,
    SignalSource,
    Soul,
)
from axiom_spine.core.settings import SynthesisSettings, load_settings

__all__ = [
    # Errors
    "AxiomSpineError",
    "ErrorCategory",
    "TransientError",
    "ConfigError",
    "InvalidConfigError",
    "ClassifierRequiredError",
    "StorageError",
    "LockContentionError",
    "is_transient",
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # Models
    "Signal",
    "SignalDraft",
    "SignalSource",
    "Principle",
    "Axiom",
    "Soul",
    "OrphanedSignal",
    "PromotionCriteria",
    "CycleThresholds",
    # Settings
    "SynthesisSettings",
    "load_settings",
]
