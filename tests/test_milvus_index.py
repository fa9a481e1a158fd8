import ast
import sqlite3
from contextlib import contextmanager
from types import SimpleNamespace

import numpy as np
import pytest

pytest.importorskip("pymilvus")

from nodevec.errors import ConfigurationError, StorageError
from nodevec.nodes import Span
from nodevec.store import VectorStore, build_store
from nodevec.store.sql import db
from nodevec.store.vector.milvus_index import MilvusVectorIndex

DIM = 8


class FakeCollection:
    """In-memory stand-in for ``pymilvus.Collection`` (IP metric)."""

    def __init__(self):
        self.rows: dict[int, np.ndarray] = {}
        self.queries = []
        self.flushed = 0
        self.compacted = False
        self.released = False

    def insert(self, data):
        ids, vectors = data
        for rid, vec in zip(ids, vectors):
            self.rows[int(rid)] = np.asarray(vec, dtype=np.float32)

    def delete(self, expr):
        _, _, raw = expr.partition(" in ")
        for rid in ast.literal_eval(raw):
            self.rows.pop(int(rid), None)

    def flush(self):
        self.flushed += 1

    def search(self, data, anns_field, param, limit, consistency_level=None):
        q = np.asarray(data[0], dtype=np.float32)
        scored = sorted(
            ((float(v @ q), rid) for rid, v in self.rows.items()), key=lambda p: (-p[0], p[1])
        )
        return [[SimpleNamespace(id=rid, score=score) for score, rid in scored[:limit]]]

    def query(self, expr="", output_fields=None, limit=None, offset=0):
        self.queries.append((expr, limit, offset))
        ids = sorted(self.rows)
        return [{"record_id": rid} for rid in ids[offset : offset + limit]]

    def compact(self):
        self.compacted = True

    def release(self):
        self.released = True


@pytest.fixture
def fake():
    return FakeCollection()


@pytest.fixture
def index(fake):
    idx = MilvusVectorIndex(delete_chunk=2)
    idx.dimensions = DIM
    idx._collection = fake
    idx._collection_loaded = True
    return idx


@pytest.fixture
def milvus_store(db_path, index):
    vs = VectorStore(db_path, DIM, index)
    yield vs
    if vs._conn is not None:
        vs._conn.close()


def _unit(i):
    v = np.zeros(DIM, dtype=np.float32)
    v[i] = 3.0
    return v


def test_search_converts_scores_to_distances(index, fake):
    index.insert(None, 1, _unit(0))
    index.insert(None, 2, _unit(1))
    index.insert(None, 3, _unit(0))

    hits = index.search(None, _unit(0), 3)

    assert [rid for rid, _ in hits] == [1, 3, 2]
    assert hits[0][1] == pytest.approx(0.0, abs=1e-6)
    assert hits[2][1] == pytest.approx(1.0, abs=1e-6)
    # stored vectors are normalized
    assert np.linalg.norm(fake.rows[1]) == pytest.approx(1.0)


def test_ids_paginate_and_delete_chunks(index, fake):
    for rid in range(1, 6):
        index.insert(None, rid, _unit(rid % DIM))

    assert index.ids(None) == {1, 2, 3, 4, 5}
    assert [q[2] for q in fake.queries] == [0, 2, 4]

    index.delete(None, [1, 2, 3])
    assert set(fake.rows) == {4, 5}
    assert fake.flushed == 1


def test_wrong_width_is_configuration_error(index):
    with pytest.raises(ConfigurationError):
        index.insert(None, 1, np.ones(DIM + 2, dtype=np.float32))


def test_collection_dimension_mismatch():
    idx = MilvusVectorIndex()
    idx.dimensions = DIM
    field = SimpleNamespace(name="embedding", params={"dim": DIM * 2})
    collection = SimpleNamespace(schema=SimpleNamespace(fields=[field]))
    with pytest.raises(ConfigurationError):
        idx._check_dimensions(collection)


def test_milvus_errors_become_storage_errors(index, monkeypatch):
    from pymilvus.exceptions import MilvusException

    def boom(*args, **kwargs):
        raise MilvusException(message="server unavailable")

    monkeypatch.setattr(index._collection, "insert", boom)
    with pytest.raises(StorageError):
        index.insert(None, 1, _unit(0))


def test_close_releases_collection(index, fake):
    index.close()
    assert fake.released
    assert index._collection is None


@pytest.mark.asyncio
async def test_store_round_trip_over_milvus(milvus_store, fake):
    rid = await milvus_store.insert("n", Span(0, 4), _unit(2))
    matches = await milvus_store.query(_unit(2), 5)

    assert [(m.record_id, m.node_id, m.start, m.end) for m in matches] == [(rid, "n", 0, 4)]
    assert matches[0].distance == pytest.approx(0.0, abs=1e-6)

    assert await milvus_store.clear("n") == 1
    assert fake.rows == {}
    assert await milvus_store.records("n") == []


@pytest.mark.asyncio
async def test_vector_is_removed_when_registry_commit_fails(milvus_store, fake, monkeypatch):
    await milvus_store.ensure_schema()

    @contextmanager
    def failing_commit(conn):
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        finally:
            conn.execute("ROLLBACK")
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(db, "transaction", failing_commit)

    with pytest.raises(StorageError):
        await milvus_store.insert("n", Span(0, 1), _unit(0))

    monkeypatch.undo()
    assert fake.rows == {}
    assert await milvus_store.count() == 0


@pytest.mark.asyncio
async def test_reconcile_repairs_drift(milvus_store, fake):
    keep = await milvus_store.insert("n", Span(0, 1), _unit(0))
    lost = await milvus_store.insert("n", Span(1, 2), _unit(1))

    fake.rows.pop(lost)                       # vector vanished
    fake.rows[999] = np.ones(DIM, np.float32)  # vector without a row

    report = await milvus_store.reconcile()

    assert (report.dangling_rows, report.orphan_vectors) == (1, 1)
    assert [r.record_id for r in await milvus_store.records("n")] == [keep]
    assert set(fake.rows) == {keep}
    assert (await milvus_store.reconcile()).clean


@pytest.mark.asyncio
async def test_compact_reaches_collection(milvus_store, fake):
    await milvus_store.compact()
    assert fake.compacted


def test_build_store_milvus(tmp_path):
    store_cfg = SimpleNamespace(
        DB_LOCATION=str(tmp_path / "m.db"), EXTENSION_DIR="", DIMENSIONS=DIM, VECTOR_BACKEND="milvus"
    )
    milvus_cfg = SimpleNamespace(
        MILVUS_HOST="milvus",
        MILVUS_PORT="19530",
        MILVUS_COLLECTION="spans",
        MILVUS_NLIST=64,
        MILVUS_NPROBE=8,
        MILVUS_DELETE_CHUNK=100,
    )

    vs = build_store(store_cfg, milvus_cfg)

    assert isinstance(vs.index, MilvusVectorIndex)
    assert (vs.index.host, vs.index.collection_name, vs.index.nprobe) == ("milvus", "spans", 8)
    with pytest.raises(ConfigurationError):
        build_store(store_cfg)
