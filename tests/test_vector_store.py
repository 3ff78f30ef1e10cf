"""
Tests for the vector store backends: dimension invariant, ranking,
owner filtering and failure behaviour.
"""
import json
from types import SimpleNamespace

import pytest

from attune.core.errors import DimensionError, InvalidInputError, VectorStoreError
from attune.models.embedding import LogEmbedding
from attune.services.vector_store import SqlVectorStore, SupabaseVectorStore

from conftest import unit_vector


def blend(a: int, b: int, weight: float) -> list[float]:
    """Unit-ish vector mostly along axis `a`, partly along `b`."""
    vec = [0.0] * 384
    vec[a] = 1.0
    vec[b] = weight
    return vec


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

class TestSqlVectorStore:
    def test_upsert_and_search(self, db, user_id):
        store = SqlVectorStore(db)
        rid = store.upsert("Leaked at 3pm", unit_vector(0), {"type": "leak"}, user_id=user_id)
        assert isinstance(rid, int)

        results = store.search_by_similarity(unit_vector(0), 0.5, 5, user_id=user_id)
        assert len(results) == 1
        assert results[0].content == "Leaked at 3pm"
        assert results[0].metadata["type"] == "leak"
        assert results[0].similarity == pytest.approx(1.0)

    def test_results_sorted_thresholded_and_limited(self, db, user_id):
        store = SqlVectorStore(db)
        store.upsert("exact", unit_vector(0), {}, user_id=user_id)
        store.upsert("close", blend(0, 1, 0.3), {}, user_id=user_id)
        store.upsert("far", blend(1, 0, 0.1), {}, user_id=user_id)
        store.upsert("closer", blend(0, 1, 0.1), {}, user_id=user_id)

        results = store.search_by_similarity(unit_vector(0), 0.5, 2, user_id=user_id)
        assert [r.content for r in results] == ["exact", "closer"]

        results = store.search_by_similarity(unit_vector(0), 0.5, 10, user_id=user_id)
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)
        assert all(s >= 0.5 for s in sims)
        assert "far" not in [r.content for r in results]

    def test_search_scoped_to_user(self, db, user_id):
        store = SqlVectorStore(db)
        store.upsert("mine", unit_vector(0), {}, user_id=user_id)
        store.upsert("theirs", unit_vector(0), {}, user_id=user_id + "-other")
        results = store.search_by_similarity(unit_vector(0), 0.5, 10, user_id=user_id)
        assert [r.content for r in results] == ["mine"]

    def test_upsert_wrong_dimension_writes_nothing(self, db, user_id):
        store = SqlVectorStore(db)
        with pytest.raises(DimensionError):
            store.upsert("bad", [0.1] * 383, {}, user_id=user_id)
        assert db.query(LogEmbedding).filter(LogEmbedding.user_id == user_id).count() == 0

    def test_search_wrong_dimension(self, db):
        with pytest.raises(DimensionError):
            SqlVectorStore(db).search_by_similarity([0.1] * 385, 0.5, 5)

    def test_invalid_threshold_and_limit(self, db):
        store = SqlVectorStore(db)
        with pytest.raises(InvalidInputError):
            store.search_by_similarity(unit_vector(0), 1.5, 5)
        with pytest.raises(InvalidInputError):
            store.search_by_similarity(unit_vector(0), 0.5, 0)

    def test_unreadable_rows_skipped(self, db, user_id):
        db.add(LogEmbedding(user_id=user_id, content="broken", vector="not json"))
        db.add(LogEmbedding(user_id=user_id, content="short", vector=json.dumps([1.0, 0.0])))
        db.commit()
        store = SqlVectorStore(db)
        store.upsert("good", unit_vector(0), {}, user_id=user_id)
        results = store.search_by_similarity(unit_vector(0), 0.0, 10, user_id=user_id)
        assert [r.content for r in results] == ["good"]

    def test_recent_newest_first(self, db, user_id):
        store = SqlVectorStore(db)
        for i in range(3):
            store.upsert(f"entry {i}", unit_vector(i), {}, user_id=user_id)
        results = store.recent(2, user_id=user_id)
        assert [r.content for r in results] == ["entry 2", "entry 1"]


# ---------------------------------------------------------------------------
# Hosted pgvector backend
# ---------------------------------------------------------------------------

class FakeQuery:
    """Records a supabase query-builder chain and returns canned rows."""

    def __init__(self, client, table):
        self.client = client
        self.ops = [("table", table)]

    def __getattr__(self, name):
        def op(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self
        return op

    def execute(self):
        self.client.queries.append(self.ops)
        if self.client.error:
            raise self.client.error
        return SimpleNamespace(data=self.client.rows)


class FakeRpc:
    def __init__(self, client):
        self.client = client

    def execute(self):
        if self.client.error:
            raise self.client.error
        return SimpleNamespace(data=self.client.rows)


class FakeSupabase:
    def __init__(self, rows=None, error=None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.queries = []
        self.rpc_calls = []

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        self.rpc_calls.append((name, params))
        return FakeRpc(self)


def row(rid, content, owner=None, similarity=0.9):
    metadata = {"user_id": owner} if owner else {}
    return {"id": rid, "content": content, "metadata": metadata, "similarity": similarity}


class TestSupabaseVectorStore:
    def test_upsert_inserts_row(self):
        client = FakeSupabase(rows=[{"id": "b7c1"}])
        rid = SupabaseVectorStore(client).upsert("content", unit_vector(0), {"type": "urge"}, user_id="u1", log_id=7)
        assert rid == "b7c1"

        ops = client.queries[0]
        assert ops[0] == ("table", "sovereign_log_embeddings")
        name, args, _ = ops[1]
        assert name == "insert"
        record = args[0]
        assert record["metadata"] == {"type": "urge", "user_id": "u1"}
        assert record["log_id"] == 7
        assert len(record["embedding"]) == 384

    def test_upsert_failure_raises(self):
        store = SupabaseVectorStore(FakeSupabase(error=RuntimeError("permission denied")))
        with pytest.raises(VectorStoreError):
            store.upsert("content", unit_vector(0), {})

    def test_upsert_without_returned_row_raises(self):
        store = SupabaseVectorStore(FakeSupabase(rows=[]))
        with pytest.raises(VectorStoreError):
            store.upsert("content", unit_vector(0), {})

    def test_upsert_wrong_dimension_makes_no_request(self):
        client = FakeSupabase(rows=[{"id": 1}])
        with pytest.raises(DimensionError):
            SupabaseVectorStore(client).upsert("content", [0.0] * 10, {})
        assert client.queries == []

    def test_search_calls_match_rpc_and_ranks(self):
        client = FakeSupabase(rows=[
            row(1, "low", similarity=0.71),
            row(2, "high", similarity=0.93),
            row(3, "below", similarity=0.4),
        ])
        results = SupabaseVectorStore(client).search_by_similarity(unit_vector(0), 0.7, 5)

        name, params = client.rpc_calls[0]
        assert name == "match_sovereign_logs"
        assert params["match_threshold"] == 0.7
        assert params["match_count"] == 5
        assert [r.content for r in results] == ["high", "low"]

    def test_search_failure_returns_empty(self):
        store = SupabaseVectorStore(FakeSupabase(error=RuntimeError("boom")))
        assert store.search_by_similarity(unit_vector(0), 0.7, 5) == []

    def test_scoped_search_keeps_only_owner_rows(self):
        client = FakeSupabase(rows=[
            row(1, "mine", owner="u1", similarity=0.9),
            row(2, "theirs", owner="u2", similarity=0.95),
            row(3, "ownerless", similarity=0.97),
        ])
        results = SupabaseVectorStore(client).search_by_similarity(unit_vector(0), 0.5, 5, user_id="u1")
        assert [r.content for r in results] == ["mine"]

    def test_scoped_search_overfetches_past_other_owners(self):
        client = FakeSupabase(rows=[
            row(1, "bob one", owner="bob", similarity=0.99),
            row(2, "bob two", owner="bob", similarity=0.98),
            row(3, "alice", owner="alice", similarity=0.8),
        ])
        results = SupabaseVectorStore(client).search_by_similarity(unit_vector(0), 0.5, 2, user_id="alice")
        assert client.rpc_calls[0][1]["match_count"] == 2 * SupabaseVectorStore.USER_SCOPE_OVERFETCH
        assert [r.content for r in results] == ["alice"]

    def test_recent_filters_by_owner(self):
        client = FakeSupabase(rows=[row(1, "mine", owner="u1"), row(2, "ownerless")])
        results = SupabaseVectorStore(client).recent(5, user_id="u1")
        assert [r.content for r in results] == ["mine"]
        assert ("contains", ("metadata", {"user_id": "u1"}), {}) in client.queries[0]

    def test_recent_failure_returns_empty(self):
        store = SupabaseVectorStore(FakeSupabase(error=RuntimeError("down")))
        assert store.recent(5) == []
