"""Helpers for interacting with the OpenAI embeddings API"""

from __future__ import annotations

import numpy as np
from openai import AsyncOpenAI

from nodevec.config import embedding as emb_cfg

_clients: dict[tuple[str | None, str | None], AsyncOpenAI] = {}


def client(api_key: str | None = None, base_url: str | None = None) -> AsyncOpenAI:
    """Return the shared async client for these credentials (default: configured ones)."""
    key = (api_key or emb_cfg.OPENAI_API_KEY, base_url or emb_cfg.OPENAI_BASE_URL)
    if key not in _clients:
        _clients[key] = AsyncOpenAI(api_key=key[0], base_url=key[1])
    return _clients[key]


async def embed_text(
    text: str,
    model: str,
    dimensions: int | None = None,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
) -> np.ndarray:
    """
    Return a float32 numpy vector for ``text``.

    ``dimensions`` is forwarded to models that accept a requested width
    (the ``text-embedding-3`` family); others return their native width.
    """
    kwargs = {"model": model, "input": text}
    if dimensions and model.startswith("text-embedding-3"):
        kwargs["dimensions"] = dimensions

    resp = await client(api_key, base_url).embeddings.create(**kwargs)
    if not resp.data:
        raise ValueError(f"Empty embedding response from model {model}")
    return np.asarray(resp.data[0].embedding, dtype=np.float32)
