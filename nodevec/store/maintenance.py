"""
Store maintenance
=================

The registry and the vector index can drift apart when a Milvus write
outlives a failed SQLite commit, or after a crash between the two. One
reconciliation pass deletes registry rows without a vector and vectors
without a registry row. Dropped spans come back on the node's next update.
"""

from __future__ import annotations

import logging
import sqlite3

from .sql import db
from .sql.repositories import SpansRepo
from .types import ReconcileReport
from .vector.base import VectorIndex

logger = logging.getLogger(__name__)


def reconcile(conn: sqlite3.Connection, index: VectorIndex) -> ReconcileReport:
    """Make the registry and ``index`` hold exactly the same record ids."""
    repo = SpansRepo(conn)
    with db.transaction(conn):
        registry = repo.all_ids()
        indexed = index.ids(conn)

        dangling = sorted(registry - indexed)
        orphans = sorted(indexed - registry)

        if dangling:
            repo.delete_ids(dangling)
        if orphans:
            index.delete(conn, orphans)

    report = ReconcileReport(dangling_rows=len(dangling), orphan_vectors=len(orphans))
    if report.clean:
        logger.info("Store reconciled: registry and %s index agree", index.name)
    else:
        logger.warning(
            "Store reconciled: removed %d dangling row(s) and %d orphan vector(s)",
            report.dangling_rows,
            report.orphan_vectors,
        )
    return report


def compact(conn: sqlite3.Connection, index: VectorIndex) -> None:
    """Checkpoint the WAL, vacuum SQLite and compact the index if it can."""
    db.wal_checkpoint_truncate(conn)
    db.vacuum(conn)
    index_compact = getattr(index, "compact", None)
    if callable(index_compact):
        index_compact()
