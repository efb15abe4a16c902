"""Resilience helpers: retry strategies, deadlines, bounded fan-out."""

from axiom_spine.execution.async_batch import chunked, gather_in_batches
from axiom_spine.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy
from axiom_spine.execution.timeout import TimeoutExpired, with_deadline_async

__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "RetryContext",
    "TimeoutExpired",
    "with_deadline_async",
    "chunked",
    "gather_in_batches",
]
