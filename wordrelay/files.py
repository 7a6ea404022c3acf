"""File loading, dumping and discovery."""

from __future__ import annotations

import asyncio
import fnmatch
import pathlib
from typing import Iterable, List, Optional, Sequence

from .documents import SUPPORTED_EXTENSIONS


def _read(path: pathlib.Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def _write(path: pathlib.Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


async def load(path: pathlib.Path) -> Optional[str]:
    """Read a document, returning None when it does not exist."""

    return await asyncio.to_thread(_read, path)


async def dump(path: pathlib.Path, content: Optional[str]) -> None:
    await asyncio.to_thread(_write, path, content or "")


def _matches(relative: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(relative, pattern) for pattern in patterns)


def resolve_files(
    input_root: pathlib.Path,
    files: Sequence[str] = (),
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    extensions: Sequence[str] = SUPPORTED_EXTENSIONS,
) -> List[str]:
    """List the relative posix paths to translate.

    Explicit ``files`` are returned as given. Otherwise every file with a
    supported extension under ``input_root`` is listed, filtered by the
    ``include`` and ``exclude`` glob patterns.
    """

    if files:
        return [pathlib.PurePath(item).as_posix() for item in files]

    found: List[str] = []
    for path in input_root.rglob("*"):
        if not path.is_file() or path.suffix.lower() not in extensions:
            continue
        relative = path.relative_to(input_root).as_posix()
        if include and not _matches(relative, include):
            continue
        if exclude and _matches(relative, exclude):
            continue
        found.append(relative)
    return sorted(found)
