"""Core value types shared by every pipeline stage."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class ContentType(Enum):
    """Kind of source document a collection holds."""

    BOOK = "book"
    PAPER = "paper"
    CODE = "code"


class SpanKind(Enum):
    """Kind of text an extractor emitted."""

    PARAGRAPH = "paragraph"
    CODE = "code"


@dataclass
class TextSpan:
    """A contiguous piece of extracted text."""

    kind: SpanKind
    text: str
    page: Optional[int] = None
    byte_range: range = range(0)


@dataclass
class ExtractedText:
    """Everything an extractor pulled out of one document."""

    spans: list[TextSpan] = field(default_factory=list)


@dataclass
class Document:
    """A source file queued for ingestion."""

    source_id: str
    source_hash: str
    content_type: ContentType
    path: Path
    work_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)


@dataclass
class BookMeta:
    title: str
    author: Optional[str] = None
    chapter: Optional[str] = None
    section: Optional[str] = None
    page: Optional[int] = None


@dataclass
class PaperMeta:
    title: str
    authors: list[str] = field(default_factory=list)
    section: Optional[str] = None
    page_start: Optional[int] = None
    page_end: Optional[int] = None


@dataclass
class CodeMeta:
    file_path: str
    repo: Optional[str] = None
    commit: Optional[str] = None
    language: Optional[str] = None
    symbol: Optional[str] = None


@dataclass
class FigureMeta:
    caption: str
    paper_title: Optional[str] = None
    page: Optional[int] = None
    figure_number: Optional[int] = None


ChunkPayload = Union[BookMeta, PaperMeta, CodeMeta, FigureMeta]

_PAYLOAD_TAGS = {
    BookMeta: ("Book", "book"),
    PaperMeta: ("Paper", "paper"),
    CodeMeta: ("Code", "code"),
    FigureMeta: ("Figure", "figure"),
}


def _payload_tags(payload: ChunkPayload) -> tuple[str, str]:
    try:
        return _PAYLOAD_TAGS[type(payload)]
    except KeyError:
        raise TypeError(f"not a chunk payload: {type(payload).__name__}") from None


def payload_kind(payload: ChunkPayload) -> str:
    """Content-type label of a payload: book, paper, code or figure."""
    return _payload_tags(payload)[1]


def payload_to_json(payload: ChunkPayload) -> str:
    """Serialise a payload as a JSON object keyed by its variant name."""
    variant = _payload_tags(payload)[0]
    return json.dumps({variant: asdict(payload)})


@dataclass
class Chunk:
    """One indexable piece of a document."""

    chunk_id: str
    source_id: str
    chunk_index: int
    text: str
    payload: ChunkPayload
    provenance: list = field(default_factory=list)


class ManifestStatus(Enum):
    """Outcome of one pipeline stage for one source."""

    PENDING = "Pending"
    SUCCESS = "Success"
    CACHED = "Cached"
    FAILED = "Failed"
    RECOVERED_VIA_FALLBACK = "RecoveredViaFallback"
    SKIPPED = "Skipped"
    REMOVED = "Removed"


class EmbedderError(Exception):
    """Base for embedding failures; ``message`` holds the bare reason."""

    label = "embedder"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"


class RecoverableError(EmbedderError):
    """A failure worth retrying or handing to a fallback."""

    label = "recoverable"


class TerminalError(EmbedderError):
    """A failure that no retry will fix."""

    label = "terminal"


@dataclass
class FallbackEvent:
    """What happened when a primary embedder failed recoverably."""

    primary_error: str
    recovered: bool
    fallback_error: Optional[str] = None


class LengthMismatchError(ValueError):
    """Chunks and vectors passed together differ in count."""

    def __init__(self, chunks: int, vectors: int) -> None:
        super().__init__(f"length mismatch: {chunks} chunks vs {vectors} vectors")
        self.chunks = chunks
        self.vectors = vectors