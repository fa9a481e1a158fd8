"""Helpers for interacting with a local Ollama server"""

from __future__ import annotations

import numpy as np
from ollama import AsyncClient

from nodevec.config import embedding as emb_cfg

_clients: dict[str, AsyncClient] = {}


def client(host: str | None = None) -> AsyncClient:
    """Return the shared client for ``host`` (default: configured host)."""
    target = host or emb_cfg.OLLAMA_HOST
    if target not in _clients:
        _clients[target] = AsyncClient(host=target)
    return _clients[target]


async def embed_text(text: str, model: str, host: str | None = None) -> np.ndarray:
    """
    Embed ``text`` with the local Ollama server and return a float32 vector.

    Example response from ``/api/embed``:

    .. code-block:: python
        {"model": "nomic-embed-text", "embeddings": [[0.01, -0.02, ...]]}
    """
    resp = await client(host).embed(model=model, input=text)
    embeddings = resp.embeddings
    if not embeddings:
        raise ValueError(f"Empty embedding response from model {model}")
    return np.asarray(embeddings[0], dtype=np.float32)
