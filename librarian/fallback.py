"""An embedder that falls back to a second one on recoverable failures."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Optional

from librarian.domain import (
    EmbedderError,
    FallbackEvent,
    RecoverableError,
    TerminalError,
)


class FallbackEmbedder:
    """Tries ``primary``; on a recoverable error tries ``fallback``."""

    name = "fallback-embedder"

    def __init__(self, primary: Any, fallback: Any) -> None:
        if primary.dimension() != fallback.dimension():
            raise ValueError(
                "fallback embedder dimension mismatch: "
                f"primary {primary.dimension()}, fallback {fallback.dimension()}"
            )
        self.primary = primary
        self.fallback = fallback
        self._last: Optional[FallbackEvent] = None

    def version(self) -> str:
        return f"p={self.primary.name};f={self.fallback.name}"

    def config_hash(self) -> str:
        p, f = self.primary, self.fallback
        return (
            f"p={p.name}-{p.version()}-{p.config_hash()};"
            f"f={f.name}-{f.version()}-{f.config_hash()}"
        )

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        self._last = None
        try:
            return self.primary.embed(texts)
        except TerminalError:
            raise
        except RecoverableError as primary_error:
            pe = primary_error.message
        try:
            vectors = self.fallback.embed(texts)
        except EmbedderError as fallback_error:
            fe = str(fallback_error)
            self._last = FallbackEvent(primary_error=pe, recovered=False, fallback_error=fe)
            raise TerminalError(
                f"primary recoverable: {pe}; fallback terminal: {fe}"
            ) from fallback_error
        self._last = FallbackEvent(primary_error=pe, recovered=True)
        return vectors

    def dimension(self) -> int:
        return self.primary.dimension()

    def last_event(self) -> Optional[FallbackEvent]:
        """The event of the last ``embed`` call; reading it clears it."""
        event, self._last = self._last, None
        return event