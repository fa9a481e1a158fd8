"""Milvus-backed vector index.

Vectors live in a Milvus collection keyed by ``record_id``. Milvus writes
cannot join the SQLite transaction, so the store orders its writes to keep
readers consistent (see ``VectorStore.insert``/``clear``) and
``reconcile`` repairs whatever a crash leaves behind.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import List, Sequence, Set, Tuple

import numpy as np
from pymilvus import (
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)
from pymilvus.exceptions import MilvusException

from nodevec.errors import ConfigurationError, StorageError
from .base import VectorIndex, normalize

logger = logging.getLogger(__name__)


class MilvusVectorIndex(VectorIndex):
    name = "milvus"
    transactional = False

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: str | int = "19530",
        collection: str = "nodevec_spans",
        nlist: int = 1024,
        nprobe: int = 32,
        delete_chunk: int = 800,
    ) -> None:
        self.host = host
        self.port = str(port)
        self.collection_name = collection
        self.nlist = nlist
        self.nprobe = nprobe
        self.delete_chunk = max(1, delete_chunk)
        self.dimensions: int | None = None

        self._collection: Collection | None = None
        self._collection_loaded = False
        self._collection_lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg) -> "MilvusVectorIndex":
        return cls(
            host=cfg.MILVUS_HOST,
            port=cfg.MILVUS_PORT,
            collection=cfg.MILVUS_COLLECTION,
            nlist=cfg.MILVUS_NLIST,
            nprobe=cfg.MILVUS_NPROBE,
            delete_chunk=cfg.MILVUS_DELETE_CHUNK,
        )

    def _index_params(self) -> dict:
        return {
            "index_type": "IVF_FLAT",
            "metric_type": "IP",
            "params": {"nlist": self.nlist or 1024},
        }

    def _get_collection(self) -> Collection:
        """Return the collection, connecting and creating it if needed."""
        if self._collection is not None and self._collection_loaded:
            return self._collection

        if self.dimensions is None:
            raise StorageError("Milvus index used before ensure()")

        with self._collection_lock:
            if self._collection is not None and self._collection_loaded:
                return self._collection

            connections.connect(alias="default", uri=f"http://{self.host}:{self.port}")
            name = self.collection_name

            if not utility.has_collection(name):
                fields = [
                    FieldSchema(name="record_id", dtype=DataType.INT64, is_primary=True, auto_id=False),
                    FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.dimensions),
                ]
                schema = CollectionSchema(fields, description="nodevec span embeddings")
                collection = Collection(name, schema)
                collection.create_index("embedding", self._index_params())
            else:
                collection = Collection(name)
                self._check_dimensions(collection)
                if not collection.has_index():
                    collection.create_index("embedding", self._index_params())

            collection.load()
            self._collection = collection
            self._collection_loaded = True
            return collection

    def _check_dimensions(self, collection: Collection) -> None:
        for field in collection.schema.fields:
            if field.name != "embedding":
                continue
            existing = int(field.params.get("dim", 0))
            if existing and existing != self.dimensions:
                raise ConfigurationError(
                    f"Milvus collection {self.collection_name} holds {existing}-dim vectors "
                    f"but dimensions={self.dimensions} is configured"
                )

    def _call(self, what: str, fn):
        try:
            return fn()
        except MilvusException as exc:
            raise StorageError(f"Milvus {what} failed: {exc}") from exc

    def ensure(self, conn: sqlite3.Connection, dimensions: int) -> None:
        self.dimensions = int(dimensions)
        self._call("connect", self._get_collection)

    def insert(self, conn: sqlite3.Connection, record_id: int, vector: np.ndarray) -> None:
        vec = normalize(vector, self.dimensions).tolist()

        def _run() -> None:
            col = self._get_collection()
            col.insert([[int(record_id)], [vec]])

        self._call("insert", _run)

    def delete(self, conn: sqlite3.Connection, record_ids: Sequence[int]) -> None:
        ids = [int(r) for r in record_ids]
        if not ids:
            return

        def _run() -> None:
            col = self._get_collection()
            # Delete in batches to avoid overly long expressions
            for i in range(0, len(ids), self.delete_chunk):
                col.delete(f"record_id in {ids[i : i + self.delete_chunk]}")
            col.flush()

        self._call("delete", _run)

    def drop(self, conn: sqlite3.Connection) -> None:
        def _run() -> None:
            connections.connect(alias="default", uri=f"http://{self.host}:{self.port}")
            if utility.has_collection(self.collection_name):
                utility.drop_collection(self.collection_name)

        with self._collection_lock:
            self._call("drop", _run)
            self._collection = None
            self._collection_loaded = False

    def search(self, conn: sqlite3.Connection, vector: np.ndarray, k: int) -> List[Tuple[int, float]]:
        if k <= 0:
            return []
        vec = normalize(vector, self.dimensions).tolist()

        def _run() -> List[Tuple[int, float]]:
            col = self._get_collection()
            res = col.search(
                data=[vec],
                anns_field="embedding",
                param={"metric_type": "IP", "params": {"nprobe": self.nprobe}},
                limit=k,
                consistency_level="Strong",
            )
            hits = res[0] if res else []
            # Inner product of unit vectors -> cosine distance
            pairs = [(int(h.id), max(0.0, 1.0 - float(h.score))) for h in hits]
            pairs.sort(key=lambda p: (p[1], p[0]))
            return pairs

        return self._call("search", _run)

    def ids(self, conn: sqlite3.Connection) -> Set[int]:
        def _run() -> Set[int]:
            col = self._get_collection()
            offset = 0
            ids: Set[int] = set()
            while True:
                rows = col.query(
                    expr="record_id >= 0",
                    output_fields=["record_id"],
                    limit=self.delete_chunk,
                    offset=offset,
                )
                if not rows:
                    break
                ids.update(int(r["record_id"]) for r in rows)
                if len(rows) < self.delete_chunk:
                    break
                offset += self.delete_chunk
            return ids

        return self._call("query", _run)

    def compact(self) -> None:
        """Request compaction on the underlying collection."""
        self._call("compaction", lambda: self._get_collection().compact())

    def close(self) -> None:
        with self._collection_lock:
            if self._collection is not None:
                try:
                    self._collection.release()
                except MilvusException as exc:
                    logger.warning("Milvus release failed: %s", exc)
            self._collection = None
            self._collection_loaded = False
