import hashlib
import os, sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Keep a developer's config.toml / .env from leaking into tests
os.environ["NODEVEC_CONFIG"] = str(Path(__file__).resolve().parent / "no-such-config.toml")
os.environ.setdefault("NODEVEC_DIMENSIONS", "8")
os.environ.setdefault("NODEVEC_EMBEDDING_PROVIDER", "ollama")
os.environ.setdefault("OPENAI_API_KEY", "test-openai")

from nodevec.embeddings import EmbeddingProvider
from nodevec.store import VectorStore

DIM = 8


def text_vector(text: str, dim: int = DIM) -> np.ndarray:
    """Deterministic pseudo-embedding: equal texts map to equal vectors."""
    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "little")
    return np.random.default_rng(seed).standard_normal(dim).astype(np.float32)


class FakeProvider(EmbeddingProvider):
    """Hash-based provider; ``fail_on`` texts raise the given exception."""

    def __init__(self, dim: int = DIM, fail_on: dict | None = None) -> None:
        self.dimension = dim
        self.fail_on = dict(fail_on or {})
        self.calls: list[str] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        if text in self.fail_on:
            raise self.fail_on[text]
        return text_vector(text, self.dimension)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "store" / "nodevec.db")


@pytest.fixture
def store(db_path):
    vs = VectorStore(db_path, DIM)
    yield vs
    if vs._conn is not None:
        vs._conn.close()


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def vector_for():
    return text_vector
