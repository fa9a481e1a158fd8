"""Application configuration"""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv

from .loader import load_raw_config
from .store import Store
from .embedding import Embedding
from .index import Index
from .milvus import Milvus

load_dotenv()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=logging.INFO)
logging.getLogger("httpx").setLevel(logging.WARNING)


class Config:
    """All configuration sections built from one raw config mapping."""

    def __init__(self, raw: dict | None = None) -> None:
        self.store = Store(raw)
        self.embedding = Embedding(raw)
        self.index = Index(raw)
        self.milvus = Milvus(raw)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        """Build a fresh :class:`Config` from ``path`` (or the default lookup)."""
        return cls(load_raw_config(path))


config = Config.load()

store = config.store
embedding = config.embedding
index = config.index
milvus = config.milvus


__all__ = ["store", "embedding", "index", "milvus", "config", "Config"]
