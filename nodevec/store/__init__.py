"""
Vector store
============

Owns the persistent state: the span registry (SQLite) and the vector index
keyed by the same ``record_id``. Every vector in the index has exactly one
registry row with the same key and vice versa; each mutating operation
below is all-or-nothing.

The store is an explicit handle. It connects lazily on first use (running
:meth:`VectorStore.ensure_schema`) and must be closed by its owner::

    store = VectorStore("data/nodevec.db", dimensions=768)
    rid = await store.insert("node-1", Span(0, 12), vector)
    matches = await store.query(vector, k=5)
    await store.close()
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Any, Callable, Dict, List, Sequence, TypeVar

from nodevec.errors import ConfigurationError, NodevecError, StorageError
from nodevec.nodes import Span

from . import maintenance
from .sql import db
from .sql.repositories import SpansRepo
from .types import Match, Record, ReconcileReport
from .vector import SqliteVectorIndex, VectorIndex
from .vector.base import check_width

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VectorStore:
    def __init__(
        self,
        path: str,
        dimensions: int,
        index: VectorIndex | None = None,
        *,
        extension_dir: str | None = None,
    ) -> None:
        if int(dimensions) <= 0:
            raise ConfigurationError(f"dimensions must be positive, got {dimensions}")
        self.path = str(path)
        self.dimensions = int(dimensions)
        self.index = index or SqliteVectorIndex()
        self.extension_dir = extension_dir or None

        self._conn: sqlite3.Connection | None = None
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    # --- Connection lifecycle --------------------------------------------

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def _connection(self) -> sqlite3.Connection:
        """Open the connection and provision the schema on first use."""
        if self._conn is None:
            conn = db.connect(self.path, self.extension_dir)
            try:
                self._ensure(conn, self.dimensions)
            except BaseException:
                conn.close()
                raise
            self._conn = conn
            logger.info(
                "Store opened at %s (dimensions=%d, index=%s)", self.path, self.dimensions, self.index.name
            )
        return self._conn

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return fn(self._connection(), *args)
        except NodevecError:
            raise
        except sqlite3.Error as exc:
            raise StorageError(f"Store operation failed: {exc}") from exc

    def _loop_lock(self) -> asyncio.Lock:
        """Return the store lock of the running event loop.

        One lock serves every operation within a loop; a store reused from a
        later loop (after the first one finished) gets a fresh lock.
        """
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        async with self._loop_lock():
            return await asyncio.to_thread(self._call, fn, *args)

    async def close(self) -> None:
        """Close the connection (a later operation reconnects)."""
        async with self._loop_lock():
            self.index.close()
            if self._conn is not None:
                conn, self._conn = self._conn, None
                await asyncio.to_thread(conn.close)
                logger.info("Store closed at %s", self.path)

    async def __aenter__(self) -> "VectorStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Schema -------------------------------------------------------------

    def _ensure(self, conn: sqlite3.Connection, dimensions: int) -> None:
        with db.transaction(conn):
            db.ensure_schema(conn, dimensions, self.index.name)
            self.index.ensure(conn, dimensions)

    async def ensure_schema(self, dimensions: int | None = None) -> None:
        """
        Create the registry and vector index for ``dimensions`` if missing.

        Safe to call repeatedly. A store created with another width raises
        :class:`ConfigurationError`; nothing is migrated.
        """
        dims = self.dimensions if dimensions is None else int(dimensions)
        if dims <= 0:
            raise ConfigurationError(f"dimensions must be positive, got {dims}")

        async with self._loop_lock():
            previous = self.dimensions
            if self._conn is None:
                # First open provisions the schema at the requested width
                self.dimensions = dims
            try:
                await asyncio.to_thread(self._call, self._ensure, dims)
            except BaseException:
                self.dimensions = previous
                raise
            self.dimensions = dims

    # --- Mutations ------------------------------------------------------

    async def insert(self, node_id: str, span: Span, vector) -> int:
        """
        Store ``vector`` for ``span`` of ``node_id`` and return its new record id.

        The registry row and the vector are written in one transaction; on any
        failure neither is visible afterwards.
        """
        if not node_id:
            raise ConfigurationError("insert requires a node id")
        vec = check_width(vector, self.dimensions)

        def _insert(conn: sqlite3.Connection) -> int:
            repo = SpansRepo(conn)
            rid: int | None = None
            written = False
            try:
                with db.transaction(conn):
                    rid = repo.insert_span(node_id, span.start, span.end)
                    self.index.insert(conn, rid, vec)
                    written = True
            except BaseException:
                if written and not self.index.transactional:
                    self._discard_vectors(conn, [rid])
                raise
            return rid

        return await self._run(_insert)

    def _discard_vectors(self, conn: sqlite3.Connection, ids: Sequence[int]) -> None:
        """Undo index writes whose registry transaction did not commit."""
        try:
            self.index.delete(conn, ids)
        except NodevecError as exc:
            logger.error(
                "Could not remove uncommitted vector(s) %s (err=%s); run reconcile", list(ids), exc
            )

    async def clear(self, node_id: str) -> int:
        """Delete every record of ``node_id``; returns how many were removed."""

        def _clear(conn: sqlite3.Connection) -> int:
            repo = SpansRepo(conn)
            with db.transaction(conn):
                ids = repo.ids_for_node(node_id)
                if not ids:
                    return 0
                # Vectors first: they reference the registry rows
                self.index.delete(conn, ids)
                repo.delete_ids(ids)
            return len(ids)

        removed = await self._run(_clear)
        if removed:
            logger.info("Cleared %d record(s) for node %s", removed, node_id)
        return removed

    async def drop_all(self) -> None:
        """Remove every record and vector, then re-provision an empty schema."""

        def _drop(conn: sqlite3.Connection) -> None:
            with db.transaction(conn):
                self.index.drop(conn)
                db.drop_schema(conn)
            self._ensure(conn, self.dimensions)

        await self._run(_drop)
        logger.warning("Dropped all records from store at %s", self.path)

    # --- Queries --------------------------------------------------------

    async def query(self, vector, k: int) -> List[Match]:
        """
        Return up to ``k`` records nearest to ``vector``, ascending distance.

        Index hits are joined against the registry under the store lock, so
        results always reflect the store's current contents.
        """
        vec = check_width(vector, self.dimensions)
        if k <= 0:
            return []

        def _query(conn: sqlite3.Connection) -> List[Match]:
            hits = self.index.search(conn, vec, k)
            if not hits:
                return []
            rows = SpansRepo(conn).rows_by_ids([rid for rid, _ in hits])
            matches: List[Match] = []
            for rid, distance in hits:
                row = rows.get(rid)
                if row is None:
                    continue
                matches.append(
                    Match(
                        record_id=rid,
                        node_id=row["node_id"],
                        start=int(row["start_pos"]),
                        end=int(row["end_pos"]),
                        distance=float(distance),
                    )
                )
            return matches

        return await self._run(_query)

    async def count(self) -> int:
        return await self._run(lambda conn: SpansRepo(conn).count())

    async def node_ids(self) -> List[str]:
        return await self._run(lambda conn: SpansRepo(conn).node_ids())

    async def records(self, node_id: str) -> List[Record]:
        """Registry rows of ``node_id`` ordered by span start."""

        def _records(conn: sqlite3.Connection) -> List[Record]:
            return [
                Record(int(r["record_id"]), r["node_id"], int(r["start_pos"]), int(r["end_pos"]))
                for r in SpansRepo(conn).rows_for_node(node_id)
            ]

        return await self._run(_records)

    async def vector_ids(self) -> set[int]:
        return await self._run(lambda conn: self.index.ids(conn))

    async def stats(self) -> Dict[str, Any]:
        def _stats(conn: sqlite3.Connection) -> Dict[str, Any]:
            repo = SpansRepo(conn)
            meta = db.read_meta(conn)
            return {
                "path": self.path,
                "backend": self.index.name,
                "dimensions": int(meta.get("dimensions", self.dimensions)),
                "records": repo.count(),
                "nodes": len(repo.node_ids()),
            }

        return await self._run(_stats)

    # --- Maintenance ----------------------------------------------------

    async def reconcile(self) -> ReconcileReport:
        return await self._run(lambda conn: maintenance.reconcile(conn, self.index))

    async def compact(self) -> None:
        await self._run(lambda conn: maintenance.compact(conn, self.index))


def build_store(store_cfg, milvus_cfg=None) -> VectorStore:
    """
    Factory: create the :class:`VectorStore` described by the config.

    :param store_cfg: ``nodevec.config.store`` section.
    :param milvus_cfg: ``nodevec.config.milvus`` section (Milvus backend only).
    :raises ConfigurationError: Unknown backend.
    """
    backend = store_cfg.VECTOR_BACKEND
    if backend == "sqlite":
        index: VectorIndex = SqliteVectorIndex()
    elif backend == "milvus":
        from .vector.milvus_index import MilvusVectorIndex

        if milvus_cfg is None:
            raise ConfigurationError("Milvus backend selected without Milvus settings")
        index = MilvusVectorIndex.from_config(milvus_cfg)
    else:
        raise ConfigurationError(
            f"Unknown vector store backend: {backend!r}. Supported: 'sqlite', 'milvus'"
        )

    return VectorStore(
        store_cfg.DB_LOCATION,
        store_cfg.DIMENSIONS,
        index,
        extension_dir=store_cfg.EXTENSION_DIR,
    )


__all__ = ["VectorStore", "Match", "Record", "ReconcileReport", "build_store"]
