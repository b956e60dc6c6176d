"""
Unit tests for term operations.

Tests cover:
- ID allocation and reuse protection
- Name uniqueness on add and rename
- Record seeding and cascading deletion
- Idempotent and out-of-range deletion
"""

import pytest

from planner.event_server.engine import (
    DuplicatedTermError,
    EventEngine,
    FixedEventError,
    TermNotFoundError,
)
from planner.event_server.store.memory import InMemoryEventStore
from tests.factories import collection, event_document, seeded_store


class TestAddTerm:
    """Tests for add_term()."""

    @pytest.fixture
    def engine(self):
        return EventEngine(seeded_store())

    @pytest.mark.asyncio
    async def test_add_terms_sequentially(self, engine):
        """Term IDs are 1, 2, 3 in creation order."""
        await engine.add_term(1, "Mon")
        await engine.add_term(1, "Tue")
        event = await engine.add_term(1, "Wed")

        assert event["terms"] == {1: "Mon", 2: "Tue", 3: "Wed"}

    @pytest.mark.asyncio
    async def test_add_term_seeds_absence(self, engine):
        """Every existing participant gets "absence" for the new term."""
        event = await engine.add_term(4, "Mon")

        assert event["record"] == {
            1: {1: "absence"},
            2: {1: "absence"},
            4: {1: "absence"},
            5: {1: "absence"},
        }

    @pytest.mark.asyncio
    async def test_add_duplicate_term(self, engine):
        """Same name twice is rejected and nothing changes."""
        await engine.add_term(1, "Mon")

        with pytest.raises(DuplicatedTermError) as exc:
            await engine.add_term(1, "Mon")
        assert exc.value.existing_id == 1

        event = await engine.get(1)
        assert event["terms"] == {1: "Mon"}
        assert engine.store.snapshot(1)["terms"]["counter"] == 1

    @pytest.mark.asyncio
    async def test_names_are_case_sensitive(self, engine):
        """"mon" and "Mon" are distinct terms."""
        await engine.add_term(1, "Mon")
        event = await engine.add_term(1, "mon")
        assert event["terms"] == {1: "Mon", 2: "mon"}

    @pytest.mark.asyncio
    async def test_add_term_to_fixed_event(self, engine):
        """Fixed events reject new terms."""
        with pytest.raises(FixedEventError):
            await engine.add_term(5, "Tue")

    @pytest.mark.asyncio
    async def test_deleted_ids_are_not_reused(self, engine):
        """After deleting the newest term, the next one still gets a fresh ID."""
        await engine.add_term(1, "Mon")
        await engine.add_term(1, "Tue")
        await engine.delete_term(1, 2)
        event = await engine.add_term(1, "Tue")

        assert event["terms"] == {1: "Mon", 3: "Tue"}


class TestUpdateTerm:
    """Tests for update_term()."""

    @pytest.fixture
    def engine(self):
        store = InMemoryEventStore.from_documents(
            [
                event_document(1, "e", terms=collection(3, {1: "Mon", 3: "Wed"})),
                event_document(
                    2, "fixed", terms=collection(1, {1: "Mon"}), fixed=1
                ),
            ]
        )
        return EventEngine(store)

    @pytest.mark.asyncio
    async def test_rename(self, engine):
        event = await engine.update_term(1, 1, "Monday")
        assert event["terms"] == {1: "Monday", 3: "Wed"}

    @pytest.mark.asyncio
    async def test_rename_to_own_name(self, engine):
        """Keeping the current name is not a conflict."""
        event = await engine.update_term(1, 3, "Wed")
        assert event["terms"] == {1: "Mon", 3: "Wed"}

    @pytest.mark.asyncio
    async def test_rename_to_other_name(self, engine):
        with pytest.raises(DuplicatedTermError):
            await engine.update_term(1, 1, "Wed")

    @pytest.mark.asyncio
    async def test_rename_missing_term(self, engine):
        """Deleted IDs are gone, IDs past the counter never existed."""
        with pytest.raises(TermNotFoundError) as deleted:
            await engine.update_term(1, 2, "Tue")
        assert deleted.value.gone is True

        with pytest.raises(TermNotFoundError) as unknown:
            await engine.update_term(1, 4, "Thu")
        assert unknown.value.gone is False

    @pytest.mark.asyncio
    async def test_rename_on_fixed_event(self, engine):
        with pytest.raises(FixedEventError):
            await engine.update_term(2, 1, "Tue")

    @pytest.mark.asyncio
    async def test_no_name_is_noop(self, engine):
        """Nothing to change returns the shaped event, even when fixed."""
        event = await engine.update_term(2, 1)
        assert event["terms"] == {1: "Mon"}


class TestDeleteTerm:
    """Tests for delete_term()."""

    @pytest.fixture
    def engine(self):
        store = InMemoryEventStore.from_documents(
            [
                event_document(
                    1,
                    "e",
                    terms=collection(3, {1: "Mon", 3: "Wed"}),
                    participants=collection(1, {1: "alice"}),
                    record={1: {1: "attendance", 3: "absence"}},
                ),
                event_document(
                    2, "fixed", terms=collection(1, {1: "Mon"}), fixed=1
                ),
            ]
        )
        return EventEngine(store)

    @pytest.mark.asyncio
    async def test_delete_cascades_into_record(self, engine):
        event = await engine.delete_term(1, 1)

        assert event["terms"] == {3: "Wed"}
        assert event["record"] == {1: {3: "absence"}}

    @pytest.mark.asyncio
    async def test_delete_already_deleted_is_idempotent(self, engine):
        """An ID within [1, counter] that is absent returns the event unchanged."""
        before = await engine.get(1)
        after = await engine.delete_term(1, 2)
        assert after == before

    @pytest.mark.asyncio
    async def test_delete_out_of_range(self, engine):
        for term_id in (0, 4):
            with pytest.raises(TermNotFoundError) as exc:
                await engine.delete_term(1, term_id)
            assert exc.value.gone is False

    @pytest.mark.asyncio
    async def test_delete_on_fixed_event(self, engine):
        with pytest.raises(FixedEventError):
            await engine.delete_term(2, 1)

    @pytest.mark.asyncio
    async def test_scenario_add_then_delete(self):
        """Monday + alice, add Tuesday, then drop Monday."""
        engine = EventEngine(InMemoryEventStore())
        event = await engine.create("meeting", "")
        await engine.add_term(event["id"], "Monday")
        await engine.add_participant(event["id"], "alice")

        event = await engine.add_term(event["id"], "Tuesday")
        assert event["terms"] == {1: "Monday", 2: "Tuesday"}
        assert event["record"] == {1: {1: "absence", 2: "absence"}}

        event = await engine.delete_term(event["id"], 1)
        assert event["terms"] == {2: "Tuesday"}
        assert event["record"] == {1: {2: "absence"}}
