"""High-level orchestration for document translation."""

from __future__ import annotations

import asyncio
import os
import pathlib
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from . import files as file_io
from .cache import DedupCache
from .configuration import WordrelaySettings
from .documents import compose, detect_handler, extract
from .errors import ErrorCategory, ErrorRecord, SkipTranslation, TranslatorError, error_category
from .logger import get_logger
from .policy import RetryPolicy
from .providers import TranslationProvider, build_provider
from .requester import Requester
from .splitter import Splitter
from .structures import Locale

logger = get_logger(__name__)

TRANSLATED = "translated"
COPIED = "copied"


def _inside(root: pathlib.Path, relative: str) -> Optional[pathlib.Path]:
    """Join ``relative`` onto ``root``, or None when it escapes the root."""

    root = pathlib.Path(os.path.normpath(root))
    joined = pathlib.Path(os.path.normpath(root / relative))
    if joined == root or not joined.is_relative_to(root):
        return None
    return joined


@dataclass
class LanguageSummary:
    """Report returned after processing every file for one target language."""

    source_language: str
    target_language: str
    output_root: pathlib.Path
    bytes: int
    chunks: int
    total_files: int
    translated_files: int
    copied_files: int
    skipped_files: int
    failed_files: int
    elapsed_seconds: float
    errors: List[ErrorRecord] = field(default_factory=list)
    notes: List[ErrorRecord] = field(default_factory=list)


class FileTranslator:
    """Translates one document: load, extract, split, compose, write."""

    def __init__(
        self,
        *,
        input_root: pathlib.Path,
        output_root: pathlib.Path,
        source: Locale,
        target: Locale,
        splitter: Splitter,
    ) -> None:
        self.input_root = input_root
        self.output_root = output_root
        self.source = source
        self.target = target
        self.splitter = splitter
        self.notes: List[ErrorRecord] = []

    async def __call__(self, path: str) -> str:
        detect_handler(path)

        input_path = _inside(self.input_root, path)
        output_path = _inside(self.output_root, path)
        if input_path is None or output_path is None:
            raise SkipTranslation(f"'{path}' lies outside the input or output directory.")
        try:
            content = await file_io.load(input_path)
        except OSError as exc:
            raise TranslatorError(f"Could not read {input_path}: {exc}", path) from exc

        if not content:
            await self._write(path, output_path, content)
            return COPIED

        extracted = extract(content, path, source=self.source, target=self.target)
        if not extracted.units:
            logger.debug("%s: no translatable parts, copying", path)
            self.notes.append(
                ErrorRecord(category=ErrorCategory.EMPTY_UNITS, message="no translatable parts", path=path)
            )
            await self._write(path, output_path, content)
            return COPIED

        results = await asyncio.gather(*self.splitter.split(path, extracted.units))
        parts = [part for result in results for part in result]
        composed = compose(extracted.skeleton, parts, prefer_translated=True)

        await self._write(path, output_path, composed)
        return TRANSLATED

    async def _write(self, path: str, output_path: pathlib.Path, content: Optional[str]) -> None:
        try:
            await file_io.dump(output_path, content)
        except OSError as exc:
            raise TranslatorError(f"Could not write {output_path}: {exc}", path) from exc


class TranslationRunner:
    """Runs every target language in turn over the file list.

    Within one language at most ``concurrency`` files are in flight; the
    cache, requester and splitter are rebuilt for each language.
    """

    def __init__(
        self,
        settings,
        *,
        provider: Optional[TranslationProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
        file_list: Optional[Sequence[str]] = None,
        on_language_done: Optional[Callable[[LanguageSummary], None]] = None,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy(
            retries=settings.retry_limit,
            base_delay=settings.retry_base_delay,
        )
        self.file_list = list(file_list) if file_list is not None else None
        self.on_language_done = on_language_done

    def resolve_file_list(self, targets: Sequence[Locale]) -> List[str]:
        if self.file_list is not None:
            return self.file_list

        input_root = self.settings.input.resolve()
        exclude = list(self.settings.exclude)
        for target in targets:
            output_root = self.settings.output_root(target).resolve()
            try:
                nested = output_root.relative_to(input_root).as_posix()
            except ValueError:
                continue
            exclude.append(f"{nested}/*")

        return file_io.resolve_files(
            input_root,
            files=self.settings.files,
            include=self.settings.include,
            exclude=exclude,
        )

    async def run(self) -> List[LanguageSummary]:
        source = self.settings.source_locale()
        targets = self.settings.target_locales()
        paths = self.resolve_file_list(targets)

        owns_provider = False
        provider = self.provider
        if provider is None and not self.settings.dry_run:
            provider = build_provider(self.settings)
            owns_provider = True

        summaries: List[LanguageSummary] = []
        try:
            for target in targets:
                summary = await self.run_language(source, target, paths, provider)
                summaries.append(summary)
                if self.on_language_done:
                    self.on_language_done(summary)
        finally:
            if owns_provider and provider is not None:
                await provider.aclose()
        return summaries

    async def run_language(
        self,
        source: Locale,
        target: Locale,
        paths: Sequence[str],
        provider: Optional[TranslationProvider],
    ) -> LanguageSummary:
        start_time = time.time()
        output_root = self.settings.output_root(target).resolve()

        cache = DedupCache()
        requester = Requester(
            provider=provider,
            cache=cache,
            source_language=source.language,
            target_language=target.language,
            folder_id=self.settings.folder,
            dry_run=self.settings.dry_run,
        )
        splitter = Splitter(
            requester=requester,
            cache=cache,
            policy=self.retry_policy,
            bytes_limit=self.settings.batch_bytes,
        )
        translate = FileTranslator(
            input_root=self.settings.input.resolve(),
            output_root=output_root,
            source=source,
            target=target,
            splitter=splitter,
        )

        counts = {TRANSLATED: 0, COPIED: 0, "skipped": 0, "failed": 0}
        errors: List[ErrorRecord] = []

        queue: asyncio.Queue = asyncio.Queue()
        for path in paths:
            queue.put_nowait(path)

        async def worker() -> None:
            while True:
                try:
                    path = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    status = await translate(path)
                except Exception as exc:
                    category = error_category(exc)
                    if category is ErrorCategory.SKIPPED:
                        counts["skipped"] += 1
                        logger.info("%s: skipped (%s)", path, exc)
                        continue
                    counts["failed"] += 1
                    errors.append(ErrorRecord(category=category, message=str(exc), path=path))
                    logger.error("%s: %s", path, exc)
                else:
                    counts[status] += 1

        pool_size = min(self.settings.concurrency, len(paths))
        await asyncio.gather(*(worker() for _ in range(pool_size)))
        # batches of failed files may still be retrying
        await splitter.drain()

        logger.info(
            "PROCESSED %s: bytes: %d chunks: %d",
            target.language,
            requester.stat.bytes,
            requester.stat.chunks,
        )

        return LanguageSummary(
            source_language=source.language,
            target_language=target.language,
            output_root=output_root,
            bytes=requester.stat.bytes,
            chunks=requester.stat.chunks,
            total_files=len(paths),
            translated_files=counts[TRANSLATED],
            copied_files=counts[COPIED],
            skipped_files=counts["skipped"],
            failed_files=counts["failed"],
            elapsed_seconds=time.time() - start_time,
            errors=errors,
            notes=splitter.notes + translate.notes,
        )


def run_translation(
    settings: WordrelaySettings,
    *,
    provider: Optional[TranslationProvider] = None,
    retry_policy: Optional[RetryPolicy] = None,
    file_list: Optional[Sequence[str]] = None,
    on_language_done: Optional[Callable[[LanguageSummary], None]] = None,
) -> List[LanguageSummary]:
    """Synchronous entry point that drives the whole run on a fresh event loop."""

    runner = TranslationRunner(
        settings,
        provider=provider,
        retry_policy=retry_policy,
        file_list=file_list,
        on_language_done=on_language_done,
    )
    return asyncio.run(runner.run())
