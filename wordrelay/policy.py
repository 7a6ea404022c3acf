"""Retry policy for backend calls."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Retries a fallible async action with exponential backoff.

    The delay before retry ``n`` (1-based) is ``2 ** n * base_delay``
    seconds, so the defaults wait 2s, 4s and 8s for a total of four
    attempts. ``sleep`` is injectable so tests can run on a fake clock.
    """

    def __init__(
        self,
        *,
        retries: int = 3,
        base_delay: float = 1.0,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.retries = max(0, retries)
        self.base_delay = base_delay
        self.sleep: Sleep = sleep or asyncio.sleep

    def delay(self, attempt: int) -> float:
        return (2 ** attempt) * self.base_delay

    async def run(self, action: Callable[[], Awaitable[T]], *, label: str = "request") -> T:
        attempt = 0
        while True:
            try:
                return await action()
            except Exception as exc:
                attempt += 1
                if attempt > self.retries:
                    raise
                wait_time = self.delay(attempt)
                logger.warning(
                    "Could not complete %s (attempt %d of %d: %s). Retrying in %.1fs...",
                    label,
                    attempt,
                    self.retries + 1,
                    exc,
                    wait_time,
                )
                await self.sleep(wait_time)
