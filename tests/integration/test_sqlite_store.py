"""
Integration tests for the SQLite event store.

Tests cover:
- Schema initialization
- Document create/read/set/unset/delete
- Sequence semantics (IDs never reused, allocated())
- The engine running on top of SQLite
"""

import tempfile

import pytest

from planner.event_server.engine import EventEngine, NotFoundError
from planner.event_server.store import EventStore, StoreNotInitializedError
from planner.event_server.store.sqlite_store import SqliteEventStore


class TestSqliteEventStore:
    """Tests for SqliteEventStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def store(self, data_dir):
        """Create store in the temporary directory."""
        return SqliteEventStore(data_dir, wal_mode=False)

    def test_implements_protocol(self, store):
        assert isinstance(store, EventStore)

    @pytest.mark.asyncio
    async def test_requires_initialize(self, store):
        """Operations fail before the database exists."""
        with pytest.raises(StoreNotInitializedError):
            await store.read(1)

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, store):
        await store.initialize()
        await store.initialize()

        assert store.db_path.exists()
        assert await store.get_stats() == {"events": 0, "sequence": 0}

    @pytest.mark.asyncio
    async def test_create_and_read(self, store):
        """Created documents come back with their ID."""
        await store.initialize()

        created = await store.create({"title": "Dinner", "terms": {"counter": 0, "entries": {}}})
        assert created["id"] == 1

        fetched = await store.read(1)
        assert fetched == {"id": 1, "title": "Dinner", "terms": {"counter": 0, "entries": {}}}

    @pytest.mark.asyncio
    async def test_read_missing(self, store):
        await store.initialize()
        assert await store.read(42) is None

    @pytest.mark.asyncio
    async def test_set_replaces_top_level_fields(self, store):
        """Fields named in the partial are replaced whole, others kept."""
        await store.initialize()
        await store.create({"title": "a", "terms": {"counter": 2, "entries": {"1": "x", "2": "y"}}})

        updated = await store.set(1, {"terms": {"counter": 2, "entries": {"2": "y"}}})

        assert updated["title"] == "a"
        assert updated["terms"] == {"counter": 2, "entries": {"2": "y"}}
        assert await store.read(1) == updated

    @pytest.mark.asyncio
    async def test_set_missing(self, store):
        await store.initialize()
        assert await store.set(1, {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_unset(self, store):
        await store.initialize()
        await store.create({"title": "a", "fixed": 1})

        updated = await store.unset(1, "fixed")
        assert "fixed" not in updated

        # Removing an absent field is fine
        updated = await store.unset(1, "fixed")
        assert updated == {"id": 1, "title": "a"}

    @pytest.mark.asyncio
    async def test_delete_keeps_id_allocated(self, store):
        """Deleted IDs are not reused and still count as allocated."""
        await store.initialize()
        await store.create({"title": "a"})
        await store.create({"title": "b"})

        assert await store.delete(1) is True
        assert await store.delete(1) is False
        assert await store.read(1) is None

        created = await store.create({"title": "c"})
        assert created["id"] == 3

        assert await store.allocated(1) is True
        assert await store.allocated(3) is True
        assert await store.allocated(4) is False
        assert await store.allocated(0) is False
        assert await store.get_stats() == {"events": 2, "sequence": 3}

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, data_dir):
        """A second store instance on the same directory sees the data."""
        first = SqliteEventStore(data_dir, wal_mode=False)
        await first.initialize()
        await first.create({"title": "persisted"})

        second = SqliteEventStore(data_dir, wal_mode=False)
        await second.initialize()

        assert (await second.read(1))["title"] == "persisted"
        assert (await second.create({"title": "next"}))["id"] == 2

    @pytest.mark.asyncio
    async def test_engine_on_sqlite(self, store):
        """Full flow through the engine, JSON string keys converted back to ints."""
        await store.initialize()
        engine = EventEngine(store)

        event = await engine.create("trip", "")
        await engine.add_term(event["id"], "Sat")
        await engine.add_term(event["id"], "Sun")
        event = await engine.add_participant(event["id"], "alice", {2: "attendance"})

        assert event["record"] == {1: {1: "absence", 2: "attendance"}}

        event = await engine.fix(event["id"], 2)
        assert (await engine.get(event["id"]))["fixed"] == 2

        await engine.delete(event["id"])
        with pytest.raises(NotFoundError) as exc:
            await engine.get(event["id"])
        assert exc.value.gone is True
