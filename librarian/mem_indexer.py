"""In-memory indexer for tests and small pipelines."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass

from librarian.domain import Chunk, LengthMismatchError

Vector = list[float]


@dataclass
class Point:
    """A chunk together with its vector."""

    chunk: Chunk
    vector: Vector


class MemIndexer:
    """Keeps points in a dict keyed by chunk id."""

    name = "mem-indexer"

    def __init__(self) -> None:
        self._points: dict[str, Point] = {}
        self._lock = threading.Lock()

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return "default"

    def points(self) -> list[Point]:
        with self._lock:
            return list(self._points.values())

    def count(self) -> int:
        with self._lock:
            return len(self._points)

    def by_source(self, source_id: str) -> list[Point]:
        with self._lock:
            return [p for p in self._points.values() if p.chunk.source_id == source_id]

    def upsert(self, chunks: Sequence[Chunk], vectors: Sequence[Vector]) -> None:
        """Insert or overwrite points by chunk id."""
        _check_lengths(chunks, vectors)
        with self._lock:
            self._insert(chunks, vectors)

    def replace(self, source_id: str, chunks: Sequence[Chunk], vectors: Sequence[Vector]) -> None:
        """Drop every point of ``source_id`` and insert the given ones."""
        _check_lengths(chunks, vectors)
        with self._lock:
            self._drop_source(source_id)
            self._insert(chunks, vectors)

    def delete_by_source_id(self, source_id: str) -> None:
        with self._lock:
            self._drop_source(source_id)

    def _insert(self, chunks: Sequence[Chunk], vectors: Sequence[Vector]) -> None:
        for chunk, vector in zip(chunks, vectors):
            self._points[chunk.chunk_id] = Point(chunk=chunk, vector=list(vector))

    def _drop_source(self, source_id: str) -> None:
        self._points = {
            key: p for key, p in self._points.items() if p.chunk.source_id != source_id
        }


def _check_lengths(chunks: Sequence[Chunk], vectors: Sequence[Vector]) -> None:
    if len(chunks) != len(vectors):
        raise LengthMismatchError(len(chunks), len(vectors))