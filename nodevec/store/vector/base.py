"""Common contract and vector helpers shared by the index backends."""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from typing import List, Sequence, Set, Tuple

import numpy as np

from nodevec.errors import ConfigurationError


def check_width(v, dimensions: int) -> np.ndarray:
    """Return ``v`` as a flat float32 array, refusing any other width."""
    arr = np.array(v, dtype=np.float32, copy=True).reshape(-1)
    if arr.shape[0] != dimensions:
        raise ConfigurationError(
            f"Expected embedding of dim {dimensions}, got {arr.shape[0]}"
        )
    return arr


def normalize(v, dimensions: int) -> np.ndarray:
    """Return a length-normalized float32 copy of ``v``.

    Zero vectors stay zero. A wrong width is a configuration error; vectors
    are never truncated or padded.
    """
    arr = check_width(v, dimensions)
    np.nan_to_num(arr, copy=False)
    n = float(np.linalg.norm(arr))
    if n > 0:
        arr /= n
    return arr


def to_bytes(vec: np.ndarray) -> bytes:
    """Serialize an embedding array to raw float32 bytes."""
    return np.asarray(vec, dtype=np.float32).tobytes()


def from_bytes(blob: bytes) -> np.ndarray:
    """Deserialize raw bytes into a ``np.ndarray`` embedding."""
    return np.frombuffer(blob, dtype=np.float32)


class VectorIndex(ABC):
    """
    Storage for one vector per ``record_id`` with nearest-neighbour search.

    Methods are synchronous and run inside the store's worker thread while it
    holds the store lock. ``conn`` is the store's SQLite connection; backends
    that keep vectors elsewhere may ignore it.
    """

    name: str
    # True when writes join the SQLite transaction (rolled back with it)
    transactional: bool = False

    @abstractmethod
    def ensure(self, conn: sqlite3.Connection, dimensions: int) -> None:
        """Create the index sized for ``dimensions`` if missing (idempotent)."""

    @abstractmethod
    def insert(self, conn: sqlite3.Connection, record_id: int, vector: np.ndarray) -> None:
        """Store ``vector`` (already width-checked) under ``record_id``."""

    @abstractmethod
    def delete(self, conn: sqlite3.Connection, record_ids: Sequence[int]) -> None:
        """Remove the vectors stored under ``record_ids``; unknown ids are ignored."""

    @abstractmethod
    def drop(self, conn: sqlite3.Connection) -> None:
        """Remove every vector and the index itself."""

    @abstractmethod
    def search(self, conn: sqlite3.Connection, vector: np.ndarray, k: int) -> List[Tuple[int, float]]:
        """Return up to ``k`` ``(record_id, distance)`` pairs, nearest first."""

    @abstractmethod
    def ids(self, conn: sqlite3.Connection) -> Set[int]:
        """Return every ``record_id`` present in the index."""

    def close(self) -> None:
        """Release resources. Override if needed."""
        pass
