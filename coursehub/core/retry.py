"""Bounded retry with exponential backoff for upstream calls.

Used for identity and payment provider RPCs. Exhausted attempts surface as
UpstreamError; nothing here ever returns a made-up result.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from coursehub.core.errors import UpstreamError


logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts and backoff for one upstream service."""

    max_attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0
    timeout: float | None = 10.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    @classmethod
    def from_settings(cls, settings, timeout: float | None = None) -> "RetryPolicy":
        return cls(
            max_attempts=settings.upstream_max_attempts,
            base_delay=settings.upstream_backoff_base_seconds,
            max_delay=settings.upstream_backoff_max_seconds,
            timeout=timeout,
        )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    service: str,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` with bounded retries.

    Only exceptions in ``retry_on`` (plus timeouts) are retried; anything else
    propagates untouched on the first occurrence.

    Raises:
        UpstreamError: When every attempt failed with a retryable error.
    """
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            if policy.timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=policy.timeout)
        except (TimeoutError, *retry_on) as e:
            last_error = e
            if attempt == policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            logger.warning(
                "upstream_retry",
                service=service,
                attempt=attempt,
                delay_seconds=delay,
                error=str(e),
                error_type=type(e).__name__,
            )
            await sleep(delay)

    logger.error(
        "upstream_exhausted",
        service=service,
        attempts=policy.max_attempts,
        error=str(last_error),
    )
    raise UpstreamError(
        f"{service} unavailable after {policy.max_attempts} attempts",
        service=service,
        attempts=policy.max_attempts,
    ) from last_error
