"""Extractors reading plain-text and source-code files, plus the code-walk filter."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import PurePath
from typing import Union

from librarian.domain import Document, ExtractedText, SpanKind, TextSpan

DEFAULT_SKIP_DIRS = (
    ".git", "target", "node_modules", "vendor", "dist", "build", ".venv", "__pycache__", ".tox",
)

DEFAULT_INCLUDE_EXTS = (
    "rs", "py", "js", "jsx", "ts", "tsx", "go", "java", "kt", "swift",
    "c", "h", "cc", "cpp", "hpp", "cs", "rb", "sh", "bash", "zsh", "sip",
    "toml", "yaml", "yml", "json", "md", "txt",
)


class EncodingError(ValueError):
    """A file's bytes are not valid UTF-8."""


def should_include(
    path: Union[str, os.PathLike],
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    include_exts: Iterable[str] = DEFAULT_INCLUDE_EXTS,
) -> bool:
    """Whether a directory walk should hand ``path`` to the code extractor."""
    pure = PurePath(path)
    skip = set(skip_dirs)
    if any(part in skip for part in pure.parts):
        return False
    ext = pure.suffix[1:].lower()
    return any(e.lower() == ext for e in include_exts)


def _read_utf8(doc: Document) -> str:
    data = doc.path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError(f"not utf-8: {exc}") from exc


def _single_span(kind: SpanKind, text: str) -> ExtractedText:
    length = len(text.encode("utf-8"))
    return ExtractedText(spans=[TextSpan(kind=kind, text=text, page=None, byte_range=range(0, length))])


class TextExtractor:
    """Reads a UTF-8 file as one paragraph span."""

    name = "extractor-text"

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return "default"

    def extract(self, doc: Document) -> ExtractedText:
        return _single_span(SpanKind.PARAGRAPH, _read_utf8(doc))


class CodeExtractor:
    """Reads a UTF-8 source file as one code span."""

    name = "extractor-code"

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return "default"

    def extract(self, doc: Document) -> ExtractedText:
        return _single_span(SpanKind.CODE, _read_utf8(doc))