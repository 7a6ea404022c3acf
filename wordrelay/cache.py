"""Per-run deduplication of text fragments."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional


class DedupCache:
    """Maps a text to the single future carrying its translation.

    One instance lives for one (source, target) language run. Entries are
    never removed, so a text present here has been or is being dispatched
    exactly once. All access happens on the event loop thread.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: object) -> bool:
        return text in self._entries

    def lookup(self, text: str) -> Optional[asyncio.Future]:
        return self._entries.get(text)

    def reserve(self, text: str) -> asyncio.Future:
        """Insert a pending future for ``text``; the caller must settle it."""

        if text in self._entries:
            raise KeyError(f"Text already reserved: {text[:40]!r}")
        future = asyncio.get_running_loop().create_future()
        self._entries[text] = future
        return future

    def resolve(self, text: str, value: List[str]) -> None:
        """Fulfil the pending future for ``text``; otherwise do nothing."""

        future = self._entries.get(text)
        if future is None or future.done():
            return
        future.set_result(value)

    def fail(self, text: str, error: BaseException) -> None:
        """Reject the pending future for ``text``; otherwise do nothing."""

        future = self._entries.get(text)
        if future is None or future.done():
            return
        future.set_exception(error)
