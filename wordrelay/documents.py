"""Document extraction and composition utilities."""

from __future__ import annotations

import json
import pathlib
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from .errors import DocumentFormatError, SkipTranslation
from .structures import Extracted, Locale, Skeleton

FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})")
MARKER_PATTERN = re.compile(
    r"^(?:[ \t]*(?:>[ \t]?|#{1,6}(?=[ \t]|$)|[-*+](?=[ \t]|$)|\d{1,9}[.)](?=[ \t]|$)))*"
    r"[ \t]*(?:\[[ xX]\][ \t]+)?"
)
LITERAL_LINE_PATTERN = re.compile(
    r"^\s*(?:<!--.*|\{%.*%\}\s*|\[[^\]]+\]:\s.*|(?:=+|-+|\*+|_+)\s*)$"
)
CELL_SPLIT_PATTERN = re.compile(r"(?<!\\)(\|)")
URL_PATTERN = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:)?//|^(?:mailto|tel):")
PATH_PATTERN = re.compile(r"^\S+\.(?:md|ya?ml|json|html?|png|jpe?g|gif|svg|webp)$", re.IGNORECASE)

STRUCTURAL_KEYS = frozenset({"href", "src", "url", "link", "id", "when", "icon", "lang", "langs"})

Template = List[Union[str, int]]


def _split_ending(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _has_text(value: str) -> bool:
    return any(char.isalnum() for char in value)


class _TemplateBuilder:
    """Accumulates literal pieces and unit references in document order."""

    def __init__(self) -> None:
        self.template: Template = []
        self.units: List[str] = []

    def literal(self, text: str) -> None:
        if not text:
            return
        if self.template and isinstance(self.template[-1], str):
            self.template[-1] += text
        else:
            self.template.append(text)

    def text(self, text: str) -> None:
        stripped = text.strip()
        if not stripped or not _has_text(stripped):
            self.literal(text)
            return
        lead = text[: len(text) - len(text.lstrip())]
        trail = text[len(text.rstrip()):]
        self.literal(lead)
        self.template.append(len(self.units))
        self.units.append(stripped)
        self.literal(trail)


class _Slot:
    """Placeholder for a string leaf inside a structured document."""

    __slots__ = ("index", "lead", "trail")

    def __init__(self, index: int, lead: str, trail: str) -> None:
        self.index = index
        self.lead = lead
        self.trail = trail


class BaseDocumentHandler(ABC):
    """Common base class for format handlers."""

    kind = "abstract"

    @abstractmethod
    def extract(self, content: str) -> Tuple[List[str], Any]:
        """Return the ordered units and the format-specific template."""

    @abstractmethod
    def compose(self, template: Any, values: Sequence[str]) -> str:
        """Rebuild the document with one value per unit."""


class MarkdownHandler(BaseDocumentHandler):
    """Lossless segmentation of markdown into paragraphs, items and cells."""

    kind = "markdown"

    def extract(self, content: str) -> Tuple[List[str], Any]:
        builder = _TemplateBuilder()
        lines = content.splitlines(keepends=True)
        index = self._skip_front_matter(lines, builder)

        fence: Optional[str] = None
        item_open = False
        item_prefix = ""
        item_lines: List[str] = []

        def flush() -> None:
            nonlocal item_open, item_prefix, item_lines
            if not item_open:
                return
            body, ending = _split_ending("".join(item_lines))
            builder.literal(item_prefix)
            builder.text(body)
            builder.literal(ending)
            item_open = False
            item_prefix = ""
            item_lines = []

        while index < len(lines):
            line = lines[index]
            index += 1
            body, ending = _split_ending(line)

            if fence is not None:
                builder.literal(line)
                if self._closes(fence, body):
                    fence = None
                continue

            fence_match = FENCE_PATTERN.match(body)
            if fence_match:
                flush()
                builder.literal(line)
                fence = fence_match.group(1)
                continue

            if not body.strip() or LITERAL_LINE_PATTERN.match(body):
                flush()
                builder.literal(line)
                continue

            if body.lstrip().startswith("|"):
                flush()
                for piece in CELL_SPLIT_PATTERN.split(body):
                    if piece == "|":
                        builder.literal(piece)
                    else:
                        builder.text(piece)
                builder.literal(ending)
                continue

            marker = MARKER_PATTERN.match(body).group(0)
            if marker.strip():
                flush()
                item_open = True
                item_prefix = marker
                item_lines = [line[len(marker):]]
                if "#" in marker:
                    # headings never continue onto the next line
                    flush()
                continue

            item_open = True
            item_lines.append(line)

        flush()
        return builder.units, builder.template

    def compose(self, template: Any, values: Sequence[str]) -> str:
        return "".join(
            piece if isinstance(piece, str) else values[piece] for piece in template
        )

    @staticmethod
    def _skip_front_matter(lines: List[str], builder: _TemplateBuilder) -> int:
        if not lines or lines[0].rstrip("\r\n") != "---":
            return 0
        for end in range(1, len(lines)):
            if lines[end].rstrip("\r\n") in ("---", "..."):
                builder.literal("".join(lines[: end + 1]))
                return end + 1
        return 0

    @staticmethod
    def _closes(fence: str, body: str) -> bool:
        stripped = body.strip()
        return bool(stripped) and set(stripped) == {fence[0]} and len(stripped) >= len(fence)


class StructuredHandler(BaseDocumentHandler):
    """Shared walking logic for YAML and JSON documents."""

    def extract(self, content: str) -> Tuple[List[str], Any]:
        units: List[str] = []

        def walk(node: Any, key: Optional[str]) -> Any:
            if isinstance(node, dict):
                return {name: walk(value, str(name)) for name, value in node.items()}
            if isinstance(node, list):
                return [walk(value, key) for value in node]
            if isinstance(node, str) and self._translatable(key, node):
                stripped = node.strip()
                lead = node[: len(node) - len(node.lstrip())]
                trail = node[len(node.rstrip()):]
                slot = _Slot(len(units), lead, trail)
                units.append(stripped)
                return slot
            return node

        documents = self.load(content)
        return units, [walk(document, None) for document in documents]

    def compose(self, template: Any, values: Sequence[str]) -> str:
        def fill(node: Any) -> Any:
            if isinstance(node, _Slot):
                return f"{node.lead}{values[node.index]}{node.trail}"
            if isinstance(node, dict):
                return {name: fill(value) for name, value in node.items()}
            if isinstance(node, list):
                return [fill(value) for value in node]
            return node

        return self.dump([fill(document) for document in template])

    @staticmethod
    def _translatable(key: Optional[str], value: str) -> bool:
        if key is not None and key.lower() in STRUCTURAL_KEYS:
            return False
        stripped = value.strip()
        if not stripped or not any(char.isalpha() for char in stripped):
            return False
        return not (URL_PATTERN.match(stripped) or PATH_PATTERN.match(stripped))

    @abstractmethod
    def load(self, content: str) -> List[Any]:
        """Parse the content into a list of documents."""

    @abstractmethod
    def dump(self, documents: List[Any]) -> str:
        """Serialise documents back to text."""


class YamlHandler(StructuredHandler):
    kind = "yaml"

    def load(self, content: str) -> List[Any]:
        try:
            return list(yaml.safe_load_all(content))
        except yaml.YAMLError as exc:
            raise DocumentFormatError(f"Invalid YAML document: {exc}") from exc

    def dump(self, documents: List[Any]) -> str:
        return yaml.safe_dump_all(
            documents,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
            width=4096,
        )


class JsonHandler(StructuredHandler):
    kind = "json"

    def load(self, content: str) -> List[Any]:
        try:
            return [json.loads(content)]
        except json.JSONDecodeError as exc:
            raise DocumentFormatError(f"Invalid JSON document: {exc}") from exc

    def dump(self, documents: List[Any]) -> str:
        return json.dumps(documents[0], ensure_ascii=False, indent=2) + "\n"


HANDLERS: Dict[str, BaseDocumentHandler] = {
    ".md": MarkdownHandler(),
    ".yaml": YamlHandler(),
    ".yml": YamlHandler(),
    ".json": JsonHandler(),
}
SUPPORTED_EXTENSIONS = tuple(HANDLERS)


def detect_handler(path: Union[str, pathlib.PurePath]) -> BaseDocumentHandler:
    """Select an appropriate handler for the provided file."""

    suffix = pathlib.PurePath(path).suffix.lower()
    handler = HANDLERS.get(suffix)
    if handler is None:
        raise SkipTranslation(f"Unsupported file type '{suffix or path}'.")
    return handler


def extract(
    content: str,
    path: Union[str, pathlib.PurePath],
    *,
    source: Optional[Locale] = None,
    target: Optional[Locale] = None,
) -> Extracted:
    """Split a document into ordered units and the skeleton around them."""

    handler = detect_handler(path)
    units, template = handler.extract(content)
    skeleton = Skeleton(
        kind=handler.kind,
        template=template,
        sources=list(units),
        source=source,
        target=target,
    )
    return Extracted(units=units, skeleton=skeleton)


def compose(
    skeleton: Skeleton,
    parts: Sequence[Optional[str]],
    *,
    prefer_translated: bool = True,
) -> str:
    """Reinject translated parts; gaps fall back to the source text."""

    values: List[str] = []
    for index, source in enumerate(skeleton.sources):
        part = parts[index] if index < len(parts) else None
        if part is None:
            if not prefer_translated:
                raise DocumentFormatError(f"Translation missing for part {index + 1}.")
            part = source
        values.append(part)

    handler = next(item for item in HANDLERS.values() if item.kind == skeleton.kind)
    return handler.compose(skeleton.template, values)
