"""Bounded asyncio fan-out for classifier calls.

WHY
───
Tension detection, axiom synthesis, and signal classification each fan
out many independent classifier calls. Running them all at once invites
rate limiting; running them one by one wastes wall-clock time. Work is
cut into fixed-size batches and each batch is awaited with
``asyncio.gather`` before the next one starts.

ARCHITECTURE
────────────
::

    gather_in_batches(items, handler, batch_size=5, label="tensions")
      ├── batch 0: gather(handler(i0) … handler(i4))
      ├── batch 1: gather(handler(i5) … handler(i9))
      └── … results returned in input order

The first failure propagates: a classifier outage aborts the pass
instead of leaving a silently partial result.

Example::

    verdicts = await gather_in_batches(pairs, evaluate_pair, batch_size=5)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from axiom_spine.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"Batch size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def gather_in_batches(
    items: Sequence[T],
    handler: Callable[[T], Awaitable[R]],
    batch_size: int = 5,
    *,
    label: str = "batch",
) -> list[R]:
    """Run ``handler`` over ``items`` in sequential batches of concurrent calls.

    Results come back in input order. The first exception raised inside a
    batch propagates once that batch settles; later batches never start.
    """
    batches = chunked(items, batch_size)
    results: list[R] = []

    logger.debug(
        "async_batch.start",
        label=label,
        items=len(items),
        batches=len(batches),
        batch_size=batch_size,
    )

    for index, batch in enumerate(batches):
        outcomes = await asyncio.gather(
            *(handler(item) for item in batch), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.warning(
                    "async_batch.aborted",
                    label=label,
                    batch=index,
                    error=str(outcome),
                )
                raise outcome
        results.extend(outcomes)

    logger.debug("async_batch.complete", label=label, items=len(results))
    return results


__all__ = ["chunked", "gather_in_batches"]
