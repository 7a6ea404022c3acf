"""Stateful wrapper around one backend translation call."""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Sequence

from .cache import DedupCache
from .errors import RequestError
from .logger import get_logger
from .providers import HTML_FORMAT, TranslationProvider
from .structures import RunStat, byte_length

logger = get_logger(__name__)

BatchAction = Callable[[], Awaitable[List[str]]]


class Requester:
    """Turns a batch of texts into a not-yet-started backend action.

    Calling the requester accounts the batch in ``stat`` immediately, so
    the counters report chunks attempted rather than chunks succeeded.
    """

    def __init__(
        self,
        *,
        provider: Optional[TranslationProvider],
        cache: DedupCache,
        source_language: str,
        target_language: str,
        folder_id: Optional[str],
        dry_run: bool = False,
    ) -> None:
        if provider is None and not dry_run:
            raise ValueError("A provider is required outside dry-run mode.")
        self.provider = provider
        self.cache = cache
        self.source_language = source_language
        self.target_language = target_language
        self.folder_id = folder_id
        self.dry_run = dry_run
        self.stat = RunStat()

    def __call__(self, texts: Sequence[str]) -> BatchAction:
        batch = list(texts)
        self.stat.bytes += sum(byte_length(text) for text in batch)
        self.stat.chunks += 1

        async def action() -> List[str]:
            if self.dry_run:
                return self._settle(batch, batch)

            provider = self.provider
            if provider is None:
                raise ValueError("A provider is required outside dry-run mode.")
            try:
                translations = await provider.translate(
                    batch,
                    source_language=self.source_language,
                    target_language=self.target_language,
                    folder_id=self.folder_id,
                    format=HTML_FORMAT,
                )
            except RequestError:
                raise
            except Exception as exc:
                raise RequestError(exc) from exc

            if len(translations) != len(batch):
                raise RequestError(
                    f"Backend returned {len(translations)} translations for {len(batch)} texts."
                )
            return self._settle(batch, translations)

        return action

    def _settle(self, texts: List[str], translations: Sequence[str]) -> List[str]:
        for text, translated in zip(texts, translations):
            self.cache.resolve(text, [translated])
        return list(translations)
