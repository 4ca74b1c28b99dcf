"""
Tests for the document store backends.

Tests:
1. Basic get/set/merge/delete and collection listing
2. Atomic increments (floor, missing fields, concurrency)
3. Batch preconditions and all-or-nothing commits
4. SQLite specifics (schema, persistence across instances)
"""

import asyncio
from pathlib import Path

import pytest

from prismaflow.config import Settings
from prismaflow.core.exceptions import (
    ConcurrentModificationError,
    ConfigurationError,
    DocumentNotFoundError,
)
from prismaflow.storage import (
    DeleteDocument,
    IncrementFields,
    InMemoryDocumentStore,
    Precondition,
    SetDocument,
    SQLiteDocumentStore,
    create_store,
)
from prismaflow.storage.paths import candidate_path, decode_id, encode_id


class TestBasicOperations:
    """get / set / merge / delete on every backend."""

    def test_get_missing_returns_none(self, any_store):
        assert asyncio.run(any_store.get("projects/nope")) is None

    def test_set_and_get(self, any_store):
        asyncio.run(any_store.set("projects/p1", {"name": "Review", "phases": {}}))
        assert asyncio.run(any_store.get("projects/p1")) == {"name": "Review", "phases": {}}

    def test_set_merge_keeps_other_fields(self, any_store):
        async def scenario():
            await any_store.set("projects/p1", {"name": "Review", "description": "x"})
            await any_store.set("projects/p1", {"description": "y"}, merge=True)
            return await any_store.get("projects/p1")

        assert asyncio.run(scenario()) == {"name": "Review", "description": "y"}

    def test_set_without_merge_overwrites(self, any_store):
        async def scenario():
            await any_store.set("projects/p1", {"name": "Review", "description": "x"})
            await any_store.set("projects/p1", {"name": "Other"})
            return await any_store.get("projects/p1")

        assert asyncio.run(scenario()) == {"name": "Other"}

    def test_update_missing_document_raises(self, any_store):
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(any_store.update("projects/p1", {"name": "x"}))

    def test_delete(self, any_store):
        async def scenario():
            await any_store.set("projects/p1", {"name": "Review"})
            await any_store.delete("projects/p1")
            await any_store.delete("projects/p1")
            return await any_store.get("projects/p1")

        assert asyncio.run(scenario()) is None

    def test_list_collection_is_direct_children_only(self, any_store):
        async def scenario():
            await any_store.set("projects/p1", {"name": "a"})
            await any_store.set("projects/p1/candidates/c1", {"id": "c1"})
            await any_store.set("projects/p1/candidates/c2", {"id": "c2"})
            return await any_store.list_collection("projects/p1/candidates")

        docs = asyncio.run(scenario())
        assert sorted(doc_id for doc_id, _ in docs) == ["c1", "c2"]

    def test_ids_with_slashes_round_trip(self, any_store):
        """DOI-like candidate ids stay one path segment."""
        path = candidate_path("p1", "10.1000/xyz")

        async def scenario():
            await any_store.set(path, {"id": "10.1000/xyz"})
            return await any_store.list_collection("projects/p1/candidates")

        assert asyncio.run(scenario()) == [("10.1000/xyz", {"id": "10.1000/xyz"})]
        assert decode_id(encode_id("10.1000/xyz")) == "10.1000/xyz"

    def test_delete_collection(self, any_store):
        async def scenario():
            await any_store.set(candidate_path("p1", "a/b"), {"id": "a/b"})
            await any_store.set(candidate_path("p1", "c"), {"id": "c"})
            deleted = await any_store.delete_collection("projects/p1/candidates")
            return deleted, await any_store.list_collection("projects/p1/candidates")

        deleted, remaining = asyncio.run(scenario())
        assert deleted == 2
        assert remaining == []


class TestIncrement:
    """Atomic numeric increments."""

    def test_creates_document_with_missing_fields_as_zero(self, any_store):
        asyncio.run(any_store.increment("projects/p1/prisma/stats", {"identified": 3}))
        assert asyncio.run(any_store.get("projects/p1/prisma/stats")) == {"identified": 3}

    def test_negative_delta_floored_at_zero(self, any_store):
        async def scenario():
            await any_store.increment("s/stats", {"included": 1})
            await any_store.increment("s/stats", {"included": -3})
            return await any_store.get("s/stats")

        assert asyncio.run(scenario()) == {"included": 0}

    def test_floor_disabled(self, memory_store):
        asyncio.run(memory_store.increment("s/stats", {"included": -1}, floor=None))
        assert asyncio.run(memory_store.get("s/stats")) == {"included": -1}

    def test_concurrent_increments_are_not_lost(self, any_store):
        async def scenario():
            await asyncio.gather(
                *(any_store.increment("s/stats", {"screened": 1}) for _ in range(25))
            )
            return await any_store.get("s/stats")

        assert asyncio.run(scenario()) == {"screened": 25}


class TestBatches:
    """Preconditions and all-or-nothing commits."""

    def test_precondition_mismatch_aborts_whole_batch(self, any_store):
        async def scenario():
            await any_store.set("c/1", {"decision": "include", "user_confirmed": True})
            with pytest.raises(ConcurrentModificationError):
                await any_store.commit(
                    [
                        Precondition("c/1", {"decision": None, "user_confirmed": False}),
                        SetDocument("c/1", {"decision": "exclude"}, merge=True),
                        IncrementFields("s/stats", {"screened": 1}),
                    ]
                )
            return await any_store.get("c/1"), await any_store.get("s/stats")

        candidate, stats = asyncio.run(scenario())
        assert candidate == {"decision": "include", "user_confirmed": True}
        assert stats is None

    def test_precondition_on_missing_document(self, any_store):
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(any_store.commit([Precondition("c/1"), DeleteDocument("c/2")]))

    def test_precondition_may_allow_missing(self, any_store):
        async def scenario():
            await any_store.commit(
                [
                    Precondition("c/1", {"decision": None}, must_exist=False),
                    SetDocument("c/1", {"decision": "include"}),
                ]
            )
            return await any_store.get("c/1")

        assert asyncio.run(scenario()) == {"decision": "include"}

    def test_batch_applies_in_order(self, any_store):
        async def scenario():
            await any_store.commit(
                [
                    SetDocument("c/1", {"a": 1}),
                    SetDocument("c/1", {"b": 2}, merge=True),
                    IncrementFields("c/1", {"a": 4}),
                    SetDocument("c/2", {"x": 1}),
                    DeleteDocument("c/2"),
                ]
            )
            return await any_store.get("c/1"), await any_store.get("c/2")

        assert asyncio.run(scenario()) == ({"a": 5, "b": 2}, None)

    def test_empty_batch_is_noop(self, any_store):
        asyncio.run(any_store.commit([]))


class TestSQLiteDocumentStore:
    """SQLite backend specifics."""

    def test_creates_parent_directories(self, tmp_path: Path):
        db_path = tmp_path / "subdir" / "deep" / "documents.db"
        SQLiteDocumentStore(db_path=db_path)
        assert db_path.exists()

    def test_data_survives_new_instance(self, tmp_path: Path):
        db_path = tmp_path / "documents.db"
        asyncio.run(SQLiteDocumentStore(db_path=db_path).set("projects/p1", {"name": "x"}))
        reopened = SQLiteDocumentStore(db_path=db_path)
        assert asyncio.run(reopened.get("projects/p1")) == {"name": "x"}

    def test_count_documents(self, sqlite_store):
        async def scenario():
            await sqlite_store.set("projects/p1", {"name": "x"})
            await sqlite_store.set("projects/p1/candidates/c1", {"id": "c1"})

        asyncio.run(scenario())
        assert sqlite_store.count_documents() == 2
        assert sqlite_store.count_documents("projects/p1/candidates") == 1


class TestCreateStore:
    """Backend selection from settings."""

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("PRISMAFLOW_STORE_BACKEND", "memory")
        assert isinstance(create_store(Settings()), InMemoryDocumentStore)

    def test_sqlite_backend(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("PRISMAFLOW_STORE_BACKEND", "sqlite")
        monkeypatch.setenv("PRISMAFLOW_DB_PATH", str(tmp_path / "x.db"))
        store = create_store(Settings())
        assert isinstance(store, SQLiteDocumentStore)
        assert store.db_path == (tmp_path / "x.db").resolve()

    def test_unknown_backend(self):
        settings = Settings()
        settings.storage.backend = "redis"  # type: ignore[assignment]
        with pytest.raises(ConfigurationError):
            create_store(settings)
