"""
Structured error types for axiom-spine.

Every failure raised by the engine carries a category, an explicit retry
flag, and structured context, so the retry layer can tell a transient
classifier hiccup from a fatal misconfiguration without string sniffing
at every call site.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different concerns
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry metadata for logging
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      AxiomSpineError                             │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError          ConfigError          StorageError      │
        │  (retryable=True)        (CONFIG)             (STORAGE)         │
        │       │                       │                    │            │
        │  NetworkError            InvalidConfigError   LockContentionError│
        │  CallTimeoutError        ClassifierRequired                     │
        │  RateLimitError                                                 │
        │  ServiceUnavailableError                                        │
        └─────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise generic Exception from engine code
    ✅ DO: Use the appropriate AxiomSpineError subclass

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Usage:
    from axiom_spine.core.errors import RateLimitError, is_transient

    try:
        await llm.generate(prompt)
    except Exception as e:
        if is_transient(e):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"           # Connection, timeout, rate limit
    STORAGE = "STORAGE"           # State directory, lock file, atomic write

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"             # Missing classifier, invalid settings

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what synthesis failures usually need; anything else
    goes in ``metadata``. ``to_dict()`` serializes only the fields that are set.

    Attributes:
        operation: Engine operation that failed (e.g. "match_best")
        run_id: Cycle run identifier
        workspace: Workspace path the run was operating on
        signal_id: Signal being processed, if any
        principle_id: Principle being processed, if any
        http_status: Backend status code, if the classifier reported one
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    run_id: str | None = None
    workspace: str | None = None
    signal_id: str | None = None
    principle_id: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "run_id", "workspace", "signal_id",
                    "principle_id", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AxiomSpineError(Exception):
    """
    Base exception for all axiom-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass what differs from the defaults.

    Examples:
        >>> error = AxiomSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
        >>> error.with_context(operation="compress").context.operation
        'compress'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AxiomSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StorageError("write failed").with_context(
                operation="save_soul", workspace=str(path)
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.context:
            context_dict = self.context.to_dict()
            if context_dict:
                result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retryable)
# =============================================================================


class TransientError(AxiomSpineError):
    """
    Temporary classifier/backend failure that may succeed on retry.

    Raise (or wrap into) a TransientError when calling the same operation
    again after a delay has a reasonable chance of succeeding.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Connection-level failure talking to the classifier backend."""


class CallTimeoutError(TransientError):
    """A classifier call exceeded its deadline."""


class RateLimitError(TransientError):
    """Backend answered 429; ``retry_after`` carries its wait hint in seconds."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


class ServiceUnavailableError(TransientError):
    """Backend answered with a 5xx status."""

    def __init__(self, message: str, *, status: int = 503, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status = status
        self.context.http_status = status


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(AxiomSpineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration file or value failed validation."""


class ClassifierRequiredError(ConfigError):
    """
    Raised when an operation needs the classifier and none was injected.

    There is no degraded fallback (keyword or string matching); callers
    must supply a classifier.
    """

    def __init__(self, operation: str):
        super().__init__(
            f"Classifier is required for {operation}. No fallback available."
        )
        self.operation = operation
        self.context.operation = operation


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(AxiomSpineError):
    """State directory, lock, or write failure."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class LockContentionError(StorageError):
    """Another live process holds the synthesis lock for this workspace."""

    def __init__(self, lock_path: str, holder_pid: int | str | None):
        holder = holder_pid if holder_pid is not None else "unknown"
        super().__init__(
            f"Synthesis already in progress (PID: {holder}). "
            f"Remove {lock_path} if stale."
        )
        self.lock_path = lock_path
        self.holder_pid = holder_pid
        self.context.metadata["lock_path"] = lock_path
        self.context.metadata["holder_pid"] = holder


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "rate limit",
    "429",
    "502",
    "503",
    "504",
    "network",
    "econnreset",
    "socket",
)


def is_transient(error: BaseException) -> bool:
    """Check whether a classifier failure should be retried.

    Typed errors answer for themselves. Builtin timeout and connection
    errors are transient. Anything else is transient only when its message
    names a timeout, rate limit, 5xx gateway status, or network fault.
    """
    if isinstance(error, AxiomSpineError):
        return error.retryable
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "AxiomSpineError",
    "TransientError",
    "NetworkError",
    "CallTimeoutError",
    "RateLimitError",
    "ServiceUnavailableError",
    "ConfigError",
    "InvalidConfigError",
    "ClassifierRequiredError",
    "StorageError",
    "LockContentionError",
    "is_transient",
]
