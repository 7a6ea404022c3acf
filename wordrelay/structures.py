"""Core data structures for the wordrelay translator."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

LOCALE_PATTERN = re.compile(r"^(?P<language>[A-Za-z]{2,3})(?:[-_](?P<locale>[A-Za-z]{2,4}))?$")


@dataclass(frozen=True)
class Locale:
    """A language code with its regional variant, e.g. ``en`` / ``US``."""

    language: str
    locale: str

    @classmethod
    def parse(cls, value: str) -> "Locale":
        match = LOCALE_PATTERN.match(value.strip())
        if not match:
            raise ValueError(f"Invalid language descriptor '{value}'.")
        language = match.group("language").lower()
        locale = (match.group("locale") or language).upper()
        return cls(language=language, locale=locale)

    def __str__(self) -> str:
        return f"{self.language}-{self.locale}"


@dataclass
class RunStat:
    """Dispatch counters for one language pair."""

    bytes: int = 0
    chunks: int = 0


@dataclass
class Skeleton:
    """Document structure with the units cut out.

    ``template`` is format specific; ``sources`` keeps the original unit
    texts so composition can fall back to them.
    """

    kind: str
    template: Any
    sources: List[str] = field(default_factory=list)
    source: Optional[Locale] = None
    target: Optional[Locale] = None


@dataclass
class Extracted:
    """Result of extracting a document."""

    units: List[str]
    skeleton: Skeleton


def byte_length(text: str) -> int:
    """Size of a text as sent over the wire."""

    return len(text.encode("utf-8"))
