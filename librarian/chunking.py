"""Chunkers turning extracted text into indexable chunks."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from librarian.domain import (
    BookMeta,
    Chunk,
    ChunkPayload,
    CodeMeta,
    ContentType,
    Document,
    ExtractedText,
    PaperMeta,
)


class ChunkError(ValueError):
    """The input holds nothing to chunk."""


_LANGUAGES = {
    "rs": "rust",
    "py": "python",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "go": "go",
    "java": "java",
    "kt": "kotlin",
    "swift": "swift",
    "c": "c",
    "h": "c",
    "cc": "cpp",
    "cpp": "cpp",
    "hpp": "cpp",
    "sip": "sip",
    "cs": "csharp",
    "rb": "ruby",
    "sh": "shell",
    "bash": "shell",
    "zsh": "shell",
    "toml": "toml",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "md": "markdown",
}


def detect_language(path: Union[str, os.PathLike]) -> Optional[str]:
    """Language tag for a file, judged by its extension."""
    suffix = Path(path).suffix
    if not suffix:
        return None
    return _LANGUAGES.get(suffix[1:].lower())


def _split_lines(body: str) -> list[str]:
    lines = body.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class BlankLineChunker:
    """Splits each extracted span into paragraphs on blank lines."""

    name = "chunker-blankline"

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return "default"

    def chunk(self, doc: Document, text: ExtractedText) -> list[Chunk]:
        if not text.spans:
            raise ChunkError("blank-line chunker: empty input")
        title = doc.path.stem
        chunks: list[Chunk] = []
        for span in text.spans:
            paragraphs = (p.strip() for p in span.text.split("\n\n"))
            for para in filter(None, paragraphs):
                idx = len(chunks)
                chunks.append(
                    Chunk(
                        chunk_id=f"{doc.source_id}#{idx}",
                        source_id=doc.source_id,
                        chunk_index=idx,
                        text=para,
                        payload=self._payload(doc, title, span.page),
                    )
                )
        if not chunks:
            raise ChunkError("blank-line chunker: empty input")
        return chunks

    @staticmethod
    def _payload(doc: Document, title: str, page: Optional[int]) -> ChunkPayload:
        if doc.content_type is ContentType.BOOK:
            return BookMeta(title=title, page=page)
        if doc.content_type is ContentType.PAPER:
            return PaperMeta(title=title, page_start=page, page_end=page)
        return CodeMeta(file_path=str(doc.path))


class CodeChunker:
    """Splits source code into overlapping windows of lines."""

    name = "chunker-code"

    def __init__(self, window_lines: int = 30, overlap_lines: int = 5) -> None:
        if window_lines <= overlap_lines:
            raise ValueError("window must exceed overlap")
        self.window_lines = window_lines
        self.overlap_lines = overlap_lines

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return f"w={self.window_lines};o={self.overlap_lines}"

    def chunk(self, doc: Document, text: ExtractedText) -> list[Chunk]:
        body = "\n".join(span.text for span in text.spans)
        if not body.strip():
            raise ChunkError("empty source")
        lines = _split_lines(body)
        if not lines:
            raise ChunkError("empty source")

        language = detect_language(doc.path)
        file_path = str(doc.path)
        stride = max(self.window_lines - self.overlap_lines, 1)

        chunks: list[Chunk] = []
        for start in range(0, len(lines), stride):
            end = min(start + self.window_lines, len(lines))
            idx = len(chunks)
            chunks.append(
                Chunk(
                    chunk_id=f"{doc.source_id}#{idx}",
                    source_id=doc.source_id,
                    chunk_index=idx,
                    text="\n".join(lines[start:end]),
                    payload=CodeMeta(file_path=file_path, language=language),
                )
            )
            if end == len(lines):
                break
        return chunks