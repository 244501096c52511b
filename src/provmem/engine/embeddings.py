"""Similarity providers and factory helpers.

A similarity provider turns text into embedding vectors.  The recall
engine treats it as optional: without one, recall runs lexical-only.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Protocol
from typing import runtime_checkable
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from provmem.config import EmbeddingConfig
from provmem.errors import EmbeddingError

logger = logging.getLogger(__name__)


@runtime_checkable
class SimilarityProvider(Protocol):
    """Protocol for embedding providers.

    Implementations raise ``EmbeddingError`` when a call fails.
    """

    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


class OpenAICompatibleEmbedder:
    """OpenAI-compatible ``/embeddings`` adapter."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._embed_sync, list(texts))

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        payload = {"model": self._model, "input": texts}
        request = Request(
            url=f"{self._base_url}/embeddings",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EmbeddingError(f"provider HTTP {exc.code}: {detail[:200]}") from exc
        except URLError as exc:
            raise EmbeddingError(f"provider network error: {exc.reason}") from exc
        except OSError as exc:
            raise EmbeddingError(f"provider IO error: {exc}") from exc

        return parse_embedding_response(raw, expected=len(texts))


def parse_embedding_response(raw: str, *, expected: int) -> list[list[float]]:
    """Extract vectors from an ``/embeddings`` response body, in input order."""
    try:
        data = json.loads(raw)
        items = sorted(data["data"], key=lambda item: item.get("index", 0))
        vectors = [[float(x) for x in item["embedding"]] for item in items]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise EmbeddingError("provider response missing data[].embedding") from exc

    if len(vectors) != expected:
        raise EmbeddingError(
            f"provider returned {len(vectors)} embeddings for {expected} inputs"
        )
    return vectors


class CachedEmbedder:
    """In-memory cache in front of another provider.

    Keys are the case-folded, stripped text.  ``embed_batch`` only forwards
    the texts that miss the cache, in one call.
    """

    def __init__(self, inner: SimilarityProvider, *, max_entries: int = 4096) -> None:
        self._inner = inner
        self._max_entries = max_entries
        self._cache: dict[str, list[float]] = {}

    @staticmethod
    def _key(text: str) -> str:
        return text.casefold().strip()

    def __len__(self) -> int:
        return len(self._cache)

    async def embed(self, text: str) -> list[float]:
        key = self._key(text)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        vector = await self._inner.embed(text)
        self._store(key, vector)
        return list(vector)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        keys = [self._key(text) for text in texts]
        misses: dict[str, str] = {}
        for key, text in zip(keys, texts):
            if key not in self._cache:
                misses.setdefault(key, text)

        if misses:
            vectors = await self._inner.embed_batch(list(misses.values()))
            for key, vector in zip(misses, vectors):
                self._store(key, vector)
            logger.debug(
                "Embedding cache: %d hit(s), %d miss(es)",
                len(keys) - len(misses),
                len(misses),
            )

        return [list(self._cache[key]) for key in keys]

    def _store(self, key: str, vector: list[float]) -> None:
        if len(self._cache) >= self._max_entries:
            # Evict the oldest entry
            self._cache.pop(next(iter(self._cache)))
        self._cache[key] = list(vector)

    def clear(self) -> None:
        self._cache.clear()


def build_embedder(config: EmbeddingConfig) -> SimilarityProvider | None:
    """Create a provider from ``EmbeddingConfig``; ``None`` means lexical-only."""

    provider = config.provider.strip().lower()
    if provider == "none":
        return None
    if provider == "openai":
        if not config.api_key:
            raise ValueError(
                "embedding_config.api_key is required when provider='openai'"
            )
        embedder: SimilarityProvider = OpenAICompatibleEmbedder(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )
        if config.cache:
            embedder = CachedEmbedder(embedder)
        return embedder
    raise ValueError(
        f"Unsupported embedding_config.provider '{config.provider}'. "
        "Supported providers: openai, none."
    )
