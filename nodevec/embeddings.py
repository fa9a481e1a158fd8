"""
Embedding provider gateway
==========================

Centralizes embedding logic so the rest of the codebase does not care about
the backend (OpenAI, Ollama, or a test double).

Every request is awaited exactly once and resolves to an
:class:`EmbeddingResult` holding either a vector or a :class:`ProviderError`.
Nothing here retries; callers decide what a failure means.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
import ollama
import openai

from .clients import oai as oai_client
from .clients import ollama as ollama_client
from .errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Abstract interface for text -> embedding vector conversion."""

    dimension: int

    @abstractmethod
    async def embed(self, text: str) -> np.ndarray:
        """Return the embedding of ``text`` as a 1-D float32 array."""


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings from the OpenAI API (``text-embedding-3-small`` and friends)."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        dimensions: int = 768,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.model = model
        self.dimension = dimensions
        self.api_key = api_key
        self.base_url = base_url

    async def embed(self, text: str) -> np.ndarray:
        return await oai_client.embed_text(
            text, self.model, self.dimension, api_key=self.api_key, base_url=self.base_url
        )


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeddings from a local Ollama server (``nomic-embed-text`` is 768-wide)."""

    def __init__(self, model: str = "nomic-embed-text", dimensions: int = 768, host: str | None = None) -> None:
        self.model = model
        self.dimension = dimensions
        self.host = host

    async def embed(self, text: str) -> np.ndarray:
        return await ollama_client.embed_text(text, self.model, self.host)


def build_provider(cfg, dimensions: int) -> EmbeddingProvider:
    """
    Factory: create the provider named by ``cfg.PROVIDER``.

    :param cfg: Embedding config section (``nodevec.config.embedding``).
    :param dimensions: Expected vector width (``store.DIMENSIONS``).
    :raises ConfigurationError: Unknown provider or missing credentials.
    """
    if cfg.PROVIDER == "openai":
        if not cfg.OPENAI_API_KEY:
            raise ConfigurationError("OpenAI embedding provider selected but no API key is set")
        return OpenAIEmbeddingProvider(cfg.MODEL_ID, dimensions, cfg.OPENAI_API_KEY, cfg.OPENAI_BASE_URL)
    if cfg.PROVIDER == "ollama":
        return OllamaEmbeddingProvider(cfg.MODEL_ID, dimensions, cfg.OLLAMA_HOST)
    raise ConfigurationError(
        f"Unknown embedding provider: {cfg.PROVIDER!r}. Supported: 'openai', 'ollama'"
    )


@dataclass
class EmbeddingResult:
    """Outcome of one embedding request: a vector or an error, never both."""

    vector: np.ndarray | None = None
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> np.ndarray:
        """Return the vector or raise the recorded :class:`ProviderError`."""
        if self.error is not None:
            raise self.error
        return self.vector


def classify_error(exc: BaseException) -> str:
    """Map a backend exception onto a :class:`ProviderError` kind."""
    if isinstance(exc, openai.RateLimitError):
        return "quota"
    if isinstance(exc, ollama.ResponseError) and exc.status_code == 429:
        return "quota"
    if isinstance(exc, (openai.APIConnectionError, ConnectionError, TimeoutError)):
        return "network"
    if isinstance(exc, (ValueError, TypeError, KeyError, IndexError)):
        return "malformed"
    return "backend"


def _failure(kind: str, message: str, cause: BaseException | None = None) -> EmbeddingResult:
    error = ProviderError(kind, message)
    error.__cause__ = cause
    return EmbeddingResult(error=error)


async def request_embedding(provider: EmbeddingProvider, text: str) -> EmbeddingResult:
    """
    Ask ``provider`` for the embedding of ``text``.

    :returns: :class:`EmbeddingResult`; failures are captured, not raised.
    """
    try:
        raw = await provider.embed(text)
    except Exception as exc:
        kind = classify_error(exc)
        logger.warning("Embedding request failed (kind=%s err=%s)", kind, exc)
        return _failure(kind, str(exc) or type(exc).__name__, exc)

    try:
        vec = np.asarray(raw, dtype=np.float32).reshape(-1)
    except (TypeError, ValueError) as exc:
        return _failure("malformed", f"Unusable embedding payload: {exc}", exc)

    if vec.size == 0:
        return _failure("malformed", "Provider returned an empty vector")
    if not np.all(np.isfinite(vec)):
        return _failure("malformed", "Provider returned non-finite components")
    return EmbeddingResult(vector=vec)


__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "build_provider",
    "EmbeddingResult",
    "classify_error",
    "request_embedding",
]
