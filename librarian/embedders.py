"""Deterministic hash-based embedders for tests and pipeline wiring."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence

from librarian.domain import TerminalError

Vector = list[float]


def _hash_to_vector(data: bytes, dim: int) -> Vector:
    digest = hashlib.sha256(data).digest()
    return [digest[i % len(digest)] / 127.5 - 1.0 for i in range(dim)]


class StubEmbedder:
    """Maps each text to a vector derived from its SHA-256 digest."""

    name = "embedder-stub"

    def __init__(self, dim: int = 32) -> None:
        self._dim = dim

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return f"dim={self._dim}"

    def embed(self, texts: Sequence[str]) -> list[Vector]:
        """One vector per text, in order; an empty batch is a terminal error."""
        if not texts:
            raise TerminalError("empty batch")
        return [_hash_to_vector(text.encode("utf-8"), self._dim) for text in texts]

    def dimension(self) -> int:
        return self._dim


class MultimodalStubEmbedder:
    """Maps image bytes (or any bytes) to deterministic vectors."""

    name = "embedder-multimodal-stub"

    def __init__(self, dim: int = 32) -> None:
        self._dim = dim

    def dimension(self) -> int:
        return self._dim

    def embed_image(self, data: bytes) -> Vector:
        """Same bytes always give the same vector of ``dimension()`` floats."""
        return _hash_to_vector(bytes(data), self._dim)

    def embed_batch(self, items: Iterable[bytes]) -> list[Vector]:
        return [self.embed_image(item) for item in items]