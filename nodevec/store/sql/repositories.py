"""
Span registry (SQL-only)
========================
- No embedding logic here; pure CRUD and selects.
- Callers own locking and transactions (see ``nodevec.store.VectorStore``).
"""

from __future__ import annotations

import sqlite3
from typing import Iterable, Sequence

# Stay well under SQLITE_MAX_VARIABLE_NUMBER on older builds
_ID_CHUNK = 500


def _chunks(ids: Sequence[int], size: int = _ID_CHUNK) -> Iterable[Sequence[int]]:
    for i in range(0, len(ids), size):
        yield ids[i : i + size]


class SpansRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_span(self, node_id: str, start: int, end: int) -> int:
        cur = self.conn.execute(
            "INSERT INTO embedding_spans(node_id, start_pos, end_pos) VALUES (?, ?, ?)",
            (node_id, start, end),
        )
        return int(cur.lastrowid)

    def ids_for_node(self, node_id: str) -> list[int]:
        rows = self.conn.execute(
            "SELECT record_id FROM embedding_spans WHERE node_id=? ORDER BY record_id",
            (node_id,),
        ).fetchall()
        return [int(r[0]) for r in rows]

    def delete_ids(self, ids: Sequence[int]) -> int:
        removed = 0
        for chunk in _chunks(list(ids)):
            ph = ",".join(["?"] * len(chunk))
            cur = self.conn.execute(
                f"DELETE FROM embedding_spans WHERE record_id IN ({ph})", list(chunk)
            )
            removed += cur.rowcount
        return removed

    def rows_by_ids(self, ids: Sequence[int]) -> dict[int, sqlite3.Row]:
        found: dict[int, sqlite3.Row] = {}
        for chunk in _chunks(list(ids)):
            ph = ",".join(["?"] * len(chunk))
            rows = self.conn.execute(
                f"""
                SELECT record_id, node_id, start_pos, end_pos
                FROM embedding_spans
                WHERE record_id IN ({ph})
                """,
                list(chunk),
            ).fetchall()
            found.update((int(r["record_id"]), r) for r in rows)
        return found

    def rows_for_node(self, node_id: str) -> list[sqlite3.Row]:
        return self.conn.execute(
            """
            SELECT record_id, node_id, start_pos, end_pos
            FROM embedding_spans
            WHERE node_id=?
            ORDER BY start_pos, record_id
            """,
            (node_id,),
        ).fetchall()

    def all_ids(self) -> set[int]:
        rows = self.conn.execute("SELECT record_id FROM embedding_spans").fetchall()
        return {int(r[0]) for r in rows}

    def count(self) -> int:
        return int(self.conn.execute("SELECT COUNT(*) FROM embedding_spans").fetchone()[0])

    def node_ids(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT node_id FROM embedding_spans ORDER BY node_id"
        ).fetchall()
        return [r[0] for r in rows]
