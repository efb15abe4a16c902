"""Deadline enforcement for classifier calls.

Every call into the classifier backend runs under a deadline so a hung
request can neither stall a synthesis run nor hold the workspace lock
indefinitely. Expiry raises :class:`TimeoutExpired`, a builtin
``TimeoutError`` subclass, which the retry layer treats as transient.

Architecture:
    ::

        async with with_deadline_async(60.0, "match_best"):
            await llm.classify(...)
                  │
                  ▼
        asyncio.timeout(effective)   ← min(requested, outer remaining)
                  │
                  ▼
        TimeoutExpired(timeout, elapsed, operation)

    Nested deadlines: the inner block never outlives the outer one.
    Deadlines are tracked per task through a ``ContextVar`` so concurrent
    batch items do not see each other's deadlines.

Examples:
    >>> async with with_deadline_async(10.0, "generate") as ctx:
    ...     text = await llm.generate(prompt)
    ...     ctx.remaining()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the operation ran before being interrupted
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation

        msg = f"Operation '{operation}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"

        super().__init__(msg)


@dataclass
class DeadlineContext:
    """Deadline state for one ``with_deadline_async`` block.

    Attributes:
        deadline: Absolute deadline (monotonic clock)
        timeout_seconds: Effective timeout in seconds
        operation: Name/description of the operation
        start_time: When the block started
    """

    deadline: float
    timeout_seconds: float
    operation: str = "operation"
    start_time: float = field(default_factory=time.monotonic)

    def remaining(self) -> float:
        """Seconds left; negative once expired."""
        return self.deadline - time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    def is_expired(self) -> bool:
        return time.monotonic() >= self.deadline


_deadline_stack: ContextVar[tuple[DeadlineContext, ...]] = ContextVar(
    "axiom_spine_deadlines", default=()
)


def get_current_deadline() -> DeadlineContext | None:
    """Innermost active deadline for the current task, if any."""
    stack = _deadline_stack.get()
    return stack[-1] if stack else None


def get_effective_timeout(requested: float) -> float:
    """Clamp ``requested`` to the remaining time of any outer deadline."""
    current = get_current_deadline()
    if current is None:
        return requested
    return max(0.0, min(requested, current.remaining()))


@asynccontextmanager
async def with_deadline_async(
    seconds: float, operation: str | None = None
) -> AsyncIterator[DeadlineContext]:
    """Async context manager enforcing a time limit via ``asyncio.timeout``.

    Raises:
        TimeoutExpired: If the deadline is exceeded
        ValueError: If seconds < 0
    """
    if seconds < 0:
        raise ValueError(f"Timeout must be non-negative, got {seconds}")

    op_name = operation or "operation"
    effective = get_effective_timeout(seconds)
    now = time.monotonic()
    ctx = DeadlineContext(
        deadline=now + effective,
        timeout_seconds=effective,
        operation=op_name,
        start_time=now,
    )

    token = _deadline_stack.set(_deadline_stack.get() + (ctx,))
    try:
        async with asyncio.timeout(effective):
            yield ctx
    except TimeoutError as e:
        if isinstance(e, TimeoutExpired):
            raise
        raise TimeoutExpired(
            timeout=effective,
            elapsed=ctx.elapsed,
            operation=op_name,
        ) from None
    finally:
        _deadline_stack.reset(token)


__all__ = [
    "TimeoutExpired",
    "DeadlineContext",
    "get_current_deadline",
    "get_effective_timeout",
    "with_deadline_async",
]
