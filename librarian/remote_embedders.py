"""HTTP embedders for hosted embedding APIs (OpenAI and Voyage AI)."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

import requests

from librarian.domain import EmbedderError, RecoverableError, TerminalError

Vector = list[float]

_DEFAULT_TIMEOUT_SECS = 60.0
_TRUNCATE_AT = 200
_RECOVERABLE_STATUSES = frozenset({408, 429})


class MissingApiKeyError(ValueError):
    """No API key was given, or the environment variable holding it is unset."""

    def __init__(self, env_var: str) -> None:
        super().__init__(f"{env_var} missing")
        self.env_var = env_var


def truncate(text: str) -> str:
    """Cap a response body at 200 characters, marking the cut with an ellipsis."""
    if len(text) <= _TRUNCATE_AT:
        return text
    return f"{text[:_TRUNCATE_AT]}…"


def classify(status: int, body: str) -> EmbedderError:
    """Map an unsuccessful HTTP status to a recoverable or terminal error.

    408, 429 and every 5xx are recoverable; anything else is terminal.
    """
    message = f"http {status}: {truncate(body)}"
    if status in _RECOVERABLE_STATUSES or 500 <= status <= 599:
        return RecoverableError(message)
    return TerminalError(message)


@dataclass
class OpenAiConfig:
    """Settings for :class:`OpenAiEmbedder`; ``timeout`` is in seconds."""

    model: str
    dimensions: int
    endpoint: Optional[str] = None
    batch_size: Optional[int] = None
    timeout: Optional[float] = None


@dataclass
class VoyageConfig:
    """Settings for :class:`VoyageEmbedder`; ``timeout`` is in seconds."""

    model: str
    dimensions: int
    endpoint: Optional[str] = None
    batch_size: Optional[int] = None
    timeout: Optional[float] = None


def _key_from_env(env_var: str) -> str:
    api_key = os.environ.get(env_var)
    if api_key is None:
        raise MissingApiKeyError(env_var)
    return api_key


class _HttpEmbedder:
    """Shared connection settings, batching and request handling."""

    def __init__(
        self,
        api_key: str,
        config: Union[OpenAiConfig, VoyageConfig],
        *,
        env_var: str,
        default_endpoint: str,
        default_batch: int,
    ) -> None:
        if not api_key:
            raise MissingApiKeyError(env_var)
        self._api_key = api_key
        self._model = config.model
        self._dimensions = config.dimensions
        self._endpoint = config.endpoint or default_endpoint
        self._batch_size = config.batch_size or default_batch
        self._timeout = (
            config.timeout if config.timeout is not None else _DEFAULT_TIMEOUT_SECS
        )
        self._session = requests.Session()

    def _in_batches(
        self, texts: Sequence[str], send: Callable[[list[str]], list[Vector]]
    ) -> list[Vector]:
        if not texts:
            raise TerminalError("empty batch")
        items = list(texts)
        vectors: list[Vector] = []
        for start in range(0, len(items), self._batch_size):
            vectors.extend(send(items[start:start + self._batch_size]))
        return vectors

    def _post(self, body: dict[str, Any], expected: int) -> list[Vector]:
        try:
            resp = self._session.post(
                self._endpoint,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise RecoverableError(f"transport: {exc}") from exc
        except requests.RequestException as exc:
            raise TerminalError(f"transport: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise classify(resp.status_code, resp.text)

        try:
            data = resp.json()["data"]
            vectors = [[float(x) for x in item["embedding"]] for item in data]
        except (ValueError, KeyError, TypeError) as exc:
            raise TerminalError(f"decode: {exc}") from exc

        if len(vectors) != expected:
            raise TerminalError(
                f"response has {len(vectors)} embeddings, expected {expected}"
            )
        return vectors


class OpenAiEmbedder(_HttpEmbedder):
    """Embeds texts through the OpenAI embeddings endpoint."""

    name = "embedder-openai"

    def __init__(self, api_key: str, config: OpenAiConfig) -> None:
        super().__init__(
            api_key,
            config,
            env_var="OPENAI_API_KEY",
            default_endpoint="https://api.openai.com/v1/embeddings",
            default_batch=96,
        )

    @classmethod
    def from_env(cls, config: OpenAiConfig) -> "OpenAiEmbedder":
        """Build with the API key read from ``OPENAI_API_KEY``."""
        return cls(_key_from_env("OPENAI_API_KEY"), config)

    def version(self) -> str:
        return self._model

    def config_hash(self) -> str:
        return f"model={self._model};dim={self._dimensions}"

    def dimension(self) -> int:
        return self._dimensions

    def embed(self, texts: Sequence[str]) -> list[Vector]:
        """One vector per text, in order, sent in batches of ``batch_size``."""
        return self._in_batches(texts, self._embed_batch)

    def _embed_batch(self, texts: list[str]) -> list[Vector]:
        body = {"input": texts, "model": self._model, "dimensions": self._dimensions}
        return self._post(body, len(texts))


class VoyageEmbedder(_HttpEmbedder):
    """Embeds texts through the Voyage AI embeddings endpoint."""

    name = "embedder-voyage"

    def __init__(self, api_key: str, config: VoyageConfig) -> None:
        super().__init__(
            api_key,
            config,
            env_var="VOYAGE_API_KEY",
            default_endpoint="https://api.voyageai.com/v1/embeddings",
            default_batch=64,
        )

    @classmethod
    def from_env(cls, config: VoyageConfig) -> "VoyageEmbedder":
        """Build with the API key read from ``VOYAGE_API_KEY``."""
        return cls(_key_from_env("VOYAGE_API_KEY"), config)

    def version(self) -> str:
        return self._model

    def config_hash(self) -> str:
        return f"model={self._model};dim={self._dimensions}"

    def dimension(self) -> int:
        return self._dimensions

    def embed(self, texts: Sequence[str]) -> list[Vector]:
        """One vector per text, in order, embedded as documents."""
        return self._in_batches(texts, self._embed_documents)

    def embed_query(self, query: str) -> Vector:
        """Embed one search query with ``input_type=query``."""
        return self._embed_with([query], "query")[-1]

    def _embed_documents(self, texts: list[str]) -> list[Vector]:
        return self._embed_with(texts, "document")

    def _embed_with(self, texts: list[str], input_type: str) -> list[Vector]:
        body = {"input": texts, "model": self._model, "input_type": input_type}
        return self._post(body, len(texts))