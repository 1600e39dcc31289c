"""Embedding providers consumed by the backfill scheduler."""

from __future__ import annotations

import hashlib
import math
import re
from typing import Protocol, Sequence

import requests

from content_sync.core.config import Settings
from content_sync.core.errors import ProviderError
from content_sync.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    """``embed`` one text; providers that set ``supports_batching`` also offer ``embed_batch``."""

    name: str
    supports_batching: bool

    def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingProvider:
    """Calls the OpenAI ``/embeddings`` endpoint over HTTP."""

    supports_batching = True

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-ada-002",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.name = model
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {api_key}"})

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        try:
            resp = self._session.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": list(texts)},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ProviderError(f"embedding request timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"embedding request failed: {exc}") from exc
        if not resp.ok:
            raise ProviderError(f"embedding request rejected ({resp.status_code}): {resp.text[:200]}")
        data = resp.json().get("data") or []
        if len(data) != len(texts):
            raise ProviderError(f"expected {len(texts)} embeddings, got {len(data)}")
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [list(map(float, item["embedding"])) for item in ordered]


class HashedEmbeddingProvider:
    """Deterministic bag-of-words hashing; needs no network, useful offline and in tests."""

    supports_batching = False

    def __init__(self, dim: int = 384) -> None:
        self.name = "hashed"
        self.dim = dim

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        for token in _TOKEN_RE.findall(text.lower()):
            vector[_hash_token(token, self.dim)] += 1.0
        _normalize(vector)
        return vector


def build_provider(settings: Settings) -> EmbeddingProvider | None:
    """Return the configured provider, or None when embeddings are switched off."""
    if not settings.embeddings_configured:
        logger.info("No embedding provider configured (provider=%s)", settings.embedding_provider)
        return None
    if settings.embedding_provider == "hashed":
        return HashedEmbeddingProvider()
    return OpenAIEmbeddingProvider(
        api_key=settings.openai_api_key or "",
        model=settings.embedding_model,
        base_url=settings.openai_base_url,
        timeout=settings.embedding_timeout,
    )


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["EmbeddingProvider", "OpenAIEmbeddingProvider", "HashedEmbeddingProvider", "build_provider"]
