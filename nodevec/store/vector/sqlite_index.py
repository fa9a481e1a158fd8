"""
Exact vector index inside the store's SQLite database.

Vectors are stored normalized, so cosine distance is ``1 - dot``. Search is a
full numpy scan; writes share the registry's transaction.
"""

from __future__ import annotations

import sqlite3
from typing import List, Sequence, Set, Tuple

import numpy as np

from .base import VectorIndex, from_bytes, normalize, to_bytes

_ID_CHUNK = 500


class SqliteVectorIndex(VectorIndex):
    name = "sqlite"
    transactional = True

    def __init__(self) -> None:
        self.dimensions: int | None = None

    def ensure(self, conn: sqlite3.Connection, dimensions: int) -> None:
        # The CHECK pins the blob width; the recorded store dimensions guard
        # against reopening with another width.
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS embedding_vectors (
              record_id INTEGER PRIMARY KEY REFERENCES embedding_spans(record_id),
              vector    BLOB    NOT NULL CHECK (length(vector) = {int(dimensions) * 4})
            )
            """
        )
        self.dimensions = int(dimensions)

    def insert(self, conn: sqlite3.Connection, record_id: int, vector: np.ndarray) -> None:
        vec = normalize(vector, self.dimensions)
        conn.execute(
            "INSERT INTO embedding_vectors(record_id, vector) VALUES (?, ?)",
            (int(record_id), to_bytes(vec)),
        )

    def delete(self, conn: sqlite3.Connection, record_ids: Sequence[int]) -> None:
        ids = [int(r) for r in record_ids]
        for i in range(0, len(ids), _ID_CHUNK):
            chunk = ids[i : i + _ID_CHUNK]
            ph = ",".join(["?"] * len(chunk))
            conn.execute(f"DELETE FROM embedding_vectors WHERE record_id IN ({ph})", chunk)

    def drop(self, conn: sqlite3.Connection) -> None:
        conn.execute("DROP TABLE IF EXISTS embedding_vectors")

    def search(self, conn: sqlite3.Connection, vector: np.ndarray, k: int) -> List[Tuple[int, float]]:
        if k <= 0:
            return []
        rows = conn.execute("SELECT record_id, vector FROM embedding_vectors").fetchall()
        if not rows:
            return []

        query = normalize(vector, self.dimensions)
        ids = np.fromiter((int(r[0]) for r in rows), dtype=np.int64, count=len(rows))
        matrix = np.vstack([from_bytes(r[1]) for r in rows])

        distances = np.clip(1.0 - matrix @ query, 0.0, 2.0)
        # Ascending distance; equal distances fall back to ascending record_id
        order = np.lexsort((ids, distances))[:k]
        return [(int(ids[i]), float(distances[i])) for i in order]

    def ids(self, conn: sqlite3.Connection) -> Set[int]:
        rows = conn.execute("SELECT record_id FROM embedding_vectors").fetchall()
        return {int(r[0]) for r in rows}
