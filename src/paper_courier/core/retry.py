"""Bounded retry with exponential backoff and cooperative cancellation."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from paper_courier.core.errors import DeliveryCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to back off between attempts."""

    max_attempts: int = 3
    initial_delay: float = 5.0
    backoff_factor: float = 2.0
    max_delay: float = 300.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff after the given failed attempt (1-based)."""
        return min(self.initial_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)


async def wait_for_stop(stop_event: Optional[asyncio.Event], timeout: float) -> bool:
    """Sleep up to ``timeout`` seconds. Returns True if stop was requested."""
    if stop_event is None:
        await asyncio.sleep(timeout)
        return False
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    *,
    stop_event: Optional[asyncio.Event] = None,
    label: str = "operation",
) -> T:
    """Call ``operation`` until it succeeds or the policy is exhausted.

    Only exceptions listed in ``retry_on`` are retried; the last one is
    re-raised once all attempts failed. The stop event is checked before
    every attempt and interrupts backoff sleeps.

    Raises:
        DeliveryCancelled: If stop was requested at a retry boundary
    """
    for attempt in range(1, policy.max_attempts + 1):
        if stop_event is not None and stop_event.is_set():
            raise DeliveryCancelled(f"{label} cancelled before attempt {attempt}")

        try:
            return await operation()
        except retry_on as e:
            if attempt == policy.max_attempts:
                logger.error("%s failed after %d attempts: %s", label, attempt, e)
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                label, attempt, policy.max_attempts, e, delay,
            )
            if await wait_for_stop(stop_event, delay):
                raise DeliveryCancelled(f"{label} cancelled during backoff") from e

    raise RuntimeError(f"{label}: retry loop exited without a result")
