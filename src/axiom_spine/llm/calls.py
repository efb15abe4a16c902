"""Resilient classifier calls.

Every request to the classifier goes through these two helpers: the call
runs under a deadline, and transient failures are retried by the given
strategy. Non-transient failures propagate on first occurrence.
"""

from __future__ import annotations

from collections.abc import Sequence

from axiom_spine.core.errors import is_transient
from axiom_spine.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy
from axiom_spine.execution.timeout import with_deadline_async
from axiom_spine.llm.protocol import (
    ClassificationResult,
    ClassifierProvider,
    require_classifier,
)

DEFAULT_CALL_TIMEOUT = 60.0


def default_retry() -> ExponentialBackoff:
    """3 attempts, 0.5 s doubling, transient errors only."""
    return ExponentialBackoff(
        max_retries=3, base_delay=0.5, multiplier=2.0, retry_if=is_transient
    )


async def generate_text(
    llm: ClassifierProvider | None,
    prompt: str,
    *,
    operation: str,
    retry: RetryStrategy | None = None,
    timeout: float = DEFAULT_CALL_TIMEOUT,
) -> str:
    provider = require_classifier(llm, operation)

    async def _call() -> str:
        async with with_deadline_async(timeout, operation):
            result = await provider.generate(prompt)
        return result.text

    return await RetryContext(retry or default_retry(), operation=operation).run_async(_call)


async def classify_text(
    llm: ClassifierProvider | None,
    prompt: str,
    categories: Sequence[str],
    *,
    operation: str,
    context: str | None = None,
    retry: RetryStrategy | None = None,
    timeout: float = DEFAULT_CALL_TIMEOUT,
) -> ClassificationResult:
    provider = require_classifier(llm, operation)

    async def _call() -> ClassificationResult:
        async with with_deadline_async(timeout, operation):
            return await provider.classify(prompt, categories, context)

    return await RetryContext(retry or default_retry(), operation=operation).run_async(_call)


__all__ = ["DEFAULT_CALL_TIMEOUT", "default_retry", "generate_text", "classify_text"]
