"""
SQLite bootstrap and connection helpers
=======================================

- WAL + pragmatic PRAGMAs for decent concurrent read perf.
- Autocommit connections; writes go through :func:`transaction`, which opens
  an explicit ``BEGIN IMMEDIATE`` so a block is applied entirely or not at all.
"""

from __future__ import annotations

import logging
import pathlib
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from nodevec.errors import ConfigurationError, StorageError

logger = logging.getLogger(__name__)

_EXTENSION_SUFFIXES = (".so", ".dylib", ".dll")


def connect(path: str, extension_dir: Optional[str] = None) -> sqlite3.Connection:
    if path != ":memory:":
        try:
            pathlib.Path(path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create directory for store {path}: {exc}") from exc

    try:
        conn = sqlite3.connect(
            path,
            isolation_level=None,
            check_same_thread=False,
        )
        # Pragmas: order matters a bit; set WAL first, then tuning.
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        # Reduce SQLITE_BUSY errors under contention
        conn.execute("PRAGMA busy_timeout=3000;")    # 3s
    except sqlite3.Error as exc:
        raise StorageError(f"Cannot open store at {path}: {exc}") from exc

    # dict-like rows
    conn.row_factory = sqlite3.Row

    if extension_dir:
        try:
            load_extensions(conn, extension_dir)
        except StorageError:
            conn.close()
            raise

    return conn


def load_extensions(conn: sqlite3.Connection, extension_dir: str) -> list[str]:
    """Load every shared library in ``extension_dir`` into ``conn``."""
    directory = pathlib.Path(extension_dir)
    if not directory.is_dir():
        raise StorageError(f"Extension directory {directory} does not exist")

    libs = sorted(p for p in directory.iterdir() if p.suffix in _EXTENSION_SUFFIXES)
    try:
        conn.enable_load_extension(True)
    except AttributeError as exc:
        raise StorageError("This Python's sqlite3 cannot load extensions") from exc

    loaded: list[str] = []
    try:
        for lib in libs:
            try:
                conn.load_extension(str(lib))
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to load SQLite extension {lib}: {exc}") from exc
            loaded.append(lib.name)
    finally:
        conn.enable_load_extension(False)

    logger.info("Loaded %d SQLite extension(s) from %s", len(loaded), directory)
    return loaded


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block in one write transaction; roll back on any exception."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    try:
        conn.execute("COMMIT")
    except sqlite3.Error:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise


def ensure_schema(conn: sqlite3.Connection, dimensions: int, backend: str) -> None:
    """
    Create the span registry and metadata tables if missing (idempotent).

    The first call records ``dimensions`` and ``backend``; later calls with a
    different value raise :class:`ConfigurationError` instead of migrating.
    Must run inside :func:`transaction`.
    """
    if dimensions <= 0:
        raise ConfigurationError(f"dimensions must be positive, got {dimensions}")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS embedding_spans (
          record_id INTEGER PRIMARY KEY AUTOINCREMENT,
          node_id   TEXT    NOT NULL,
          start_pos INTEGER NOT NULL,
          end_pos   INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS embedding_spans_node_id ON embedding_spans(node_id)"
    )
    conn.execute(
        "CREATE TABLE IF NOT EXISTS store_meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
    )

    _check_meta(conn, "dimensions", str(dimensions))
    _check_meta(conn, "vector_backend", backend)


def _check_meta(conn: sqlite3.Connection, key: str, expected: str) -> None:
    row = conn.execute("SELECT value FROM store_meta WHERE key=?", (key,)).fetchone()
    if row is None:
        conn.execute("INSERT INTO store_meta(key, value) VALUES(?, ?)", (key, expected))
        return
    if row["value"] != expected:
        raise ConfigurationError(
            f"Store was created with {key}={row['value']} but {key}={expected} is configured; "
            "clear the store and re-index to change it"
        )


def read_meta(conn: sqlite3.Connection) -> dict[str, str]:
    rows = conn.execute("SELECT key, value FROM store_meta").fetchall()
    return {r["key"]: r["value"] for r in rows}


def drop_schema(conn: sqlite3.Connection) -> None:
    """Drop the registry and metadata. Must run inside :func:`transaction`."""
    conn.execute("DROP TABLE IF EXISTS embedding_spans")
    conn.execute("DROP TABLE IF EXISTS store_meta")
    # AUTOINCREMENT counters live here; a reset store starts numbering over.
    has_seq = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name='sqlite_sequence'"
    ).fetchone()
    if has_seq:
        conn.execute("DELETE FROM sqlite_sequence WHERE name='embedding_spans'")


def wal_checkpoint_truncate(conn: sqlite3.Connection) -> None:
    """Run a WAL checkpoint + truncate to keep WAL from growing unbounded."""
    conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")


def vacuum(conn: sqlite3.Connection) -> None:
    conn.execute("VACUUM")
    conn.execute("ANALYZE")
