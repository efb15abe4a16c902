"""Retry strategies with exponential backoff for classifier calls.

Classifier backends fail in two ways: transiently (timeouts, 429s, 5xx
gateways) and fatally (bad credentials, malformed requests). Only the first
kind is worth waiting for, so strategies take a ``retry_if`` predicate,
normally :func:`axiom_spine.core.errors.is_transient`.

Example:
    >>> from axiom_spine.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(max_retries=3, base_delay=0.5)
    >>> [strategy.next_delay(a) for a in range(2)]
    [0.5, 1.0]
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeVar

from axiom_spine.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int, error: BaseException | None = None) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Zero-based attempt number (0 = first retry)
            error: The failure being retried; may carry a ``retry_after`` hint

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Determine if another attempt should be made.

        Args:
            attempt: Number of attempts made so far
            error: The exception that caused the failure
        """
        ...


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff capped at ``max_delay``.

    Delay = min(base_delay * (multiplier ** attempt), max_delay)

    A failure carrying ``retry_after`` (a backend's rate-limit hint) waits
    that long instead, still capped at ``max_delay``.

    ``max_retries`` counts total attempts: with the default of 3 a call is
    tried once and retried at most twice.

    Attributes:
        max_retries: Maximum number of attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        retry_if: Predicate deciding retryability (None = all)
    """

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    multiplier: float = 2.0
    retry_if: Callable[[BaseException], bool] | None = None

    def next_delay(self, attempt: int, error: BaseException | None = None) -> float:
        """Calculate exponential backoff delay, honouring ``retry_after``."""
        hint = getattr(error, "retry_after", None)
        if hint is not None:
            return min(float(hint), self.max_delay)
        return min(self.base_delay * (self.multiplier ** attempt), self.max_delay)

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Check if retry should be attempted."""
        if attempt >= self.max_retries:
            return False
        if error is not None and self.retry_if is not None and not self.retry_if(error):
            return False
        return True


@dataclass
class RetryContext:
    """Tracks retry state for one logical call.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(retry_if=is_transient))
        >>> result = await ctx.run_async(llm.generate, prompt)
    """

    strategy: RetryStrategy
    operation: str = "operation"
    on_retry: Callable[[int, Exception, float], None] | None = None
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since first attempt."""
        return (utcnow() - self.started_at).total_seconds()

    async def run_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute async function with retry logic.

        Raises:
            The last exception once the strategy declines another attempt.
        """
        while True:
            self.attempt += 1
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utcnow()))

                if not self.strategy.should_retry(self.attempt, e):
                    if self.attempt > 1:
                        logger.warning(
                            "retry.exhausted",
                            operation=self.operation,
                            attempts=self.attempt,
                            error=str(e),
                        )
                    raise

                delay = self.strategy.next_delay(self.attempt - 1, e)
                logger.warning(
                    "retry.scheduled",
                    operation=self.operation,
                    attempt=self.attempt,
                    delay_seconds=delay,
                    error=str(e),
                )

                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)

                await self.sleep(delay)


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "RetryContext",
]
