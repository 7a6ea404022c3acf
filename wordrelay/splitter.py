"""Byte-bounded batching of text units with per-run deduplication."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Set

from .cache import DedupCache
from .errors import ErrorCategory, ErrorRecord
from .logger import get_logger
from .policy import RetryPolicy
from .requester import Requester
from .structures import byte_length

logger = get_logger(__name__)

BYTES_LIMIT = 10000


class Splitter:
    """Groups uncached units into batches and dispatches them.

    ``split`` returns one future per input unit, in input order. Batches
    run as background tasks; a batch that exhausts its retries rejects the
    futures of every text it carried.
    """

    def __init__(
        self,
        *,
        requester: Requester,
        cache: DedupCache,
        policy: Optional[RetryPolicy] = None,
        bytes_limit: int = BYTES_LIMIT,
    ) -> None:
        self.requester = requester
        self.cache = cache
        self.policy = policy or RetryPolicy()
        self.bytes_limit = bytes_limit
        self._tasks: Set[asyncio.Task] = set()
        self.notes: List[ErrorRecord] = []

    def split(self, path: str, texts: Sequence[str]) -> List[asyncio.Future]:
        loop = asyncio.get_running_loop()
        futures: List[asyncio.Future] = []
        buffer: List[str] = []
        buffer_size = 0

        for text in texts:
            existing = self.cache.lookup(text)
            if existing is not None:
                futures.append(existing)
                continue

            size = byte_length(text)
            if size >= self.bytes_limit:
                logger.warning("%s: part too big, skipped (%d bytes)", path, size)
                self.notes.append(
                    ErrorRecord(
                        category=ErrorCategory.OVERSIZED_UNIT,
                        message=f"part too big, skipped ({size} bytes)",
                        path=path,
                    )
                )
                passthrough = loop.create_future()
                passthrough.set_result([text])
                futures.append(passthrough)
                continue

            if buffer_size + size > self.bytes_limit:
                self._release(path, buffer)
                buffer = []
                buffer_size = 0

            futures.append(self.cache.reserve(text))
            buffer.append(text)
            buffer_size += size

        if buffer:
            self._release(path, buffer)

        return futures

    def _release(self, path: str, batch: List[str]) -> None:
        action = self.requester(batch)
        task = asyncio.get_running_loop().create_task(self._dispatch(path, batch, action))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, path: str, batch: List[str], action) -> None:
        try:
            await self.policy.run(action, label=f"batch of {len(batch)} parts for {path}")
        except Exception as exc:
            logger.debug("%s: batch of %d parts failed: %s", path, len(batch), exc)
            for text in batch:
                self.cache.fail(text, exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every batch started so far has settled."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))
