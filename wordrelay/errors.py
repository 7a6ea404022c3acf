"""Error definitions for the wordrelay translator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Tags every failure so callers can branch without inspecting classes."""

    CONFIGURATION = auto()
    REQUEST = auto()
    OVERSIZED_UNIT = auto()
    EMPTY_UNITS = auto()
    SKIPPED = auto()
    FORMAT = auto()
    FILE = auto()
    FATAL = auto()


class WordrelayError(Exception):
    """Base exception for all custom errors."""

    category = ErrorCategory.FATAL


class ConfigurationError(WordrelayError):
    """Raised when a required parameter is missing or invalid."""

    category = ErrorCategory.CONFIGURATION


class RequestError(WordrelayError):
    """Raised when the translation backend call fails."""

    category = ErrorCategory.REQUEST
    code = "REQUEST_ERROR"

    def __init__(self, message: object) -> None:
        super().__init__(str(message) or "Translation request failed.")


class DocumentFormatError(WordrelayError):
    """Raised when a document cannot be parsed for extraction."""

    category = ErrorCategory.FORMAT


class SkipTranslation(WordrelayError):
    """Raised for files that are not translated at all."""

    category = ErrorCategory.SKIPPED

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class TranslatorError(WordrelayError):
    """A file-level failure bound to the path that produced it."""

    category = ErrorCategory.FILE

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


def error_category(exc: BaseException) -> ErrorCategory:
    """Return the tag of any exception; foreign errors count as file failures."""

    category = getattr(exc, "category", None)
    if isinstance(category, ErrorCategory):
        return category
    return ErrorCategory.FILE


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    path: Optional[str] = None
