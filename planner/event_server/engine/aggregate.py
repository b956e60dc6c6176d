"""
Event aggregate engine.

Every mutation of an Event goes through EventEngine. Each operation reads the
current document, checks the domain rules, applies cascading changes in memory
and writes the changed top-level fields back in a single store call.

Rules enforced here:
    - IDs in terms/participants/comments come from per-collection counters
      and are never reused
    - Term and participant names are unique within an event
    - The record matrix has a cell for exactly each current
      (participant, term) pair, seeded with "absence"
    - A fixed event rejects changes to terms, participants, title and
      description; comments stay writable and unfix is always allowed
    - Deleting an ID in [1, counter] that is already gone succeeds unchanged

Concurrency:
    Operations on the same event are serialized by a per-event asyncio lock
    held across the read and the write, so two concurrent mutations never
    start from the same base document. This holds within one process only.

How to change safely:
    - Do all checks before the first store write
    - Return through shape_event on every success path
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from ..store.base import EventStore
from .errors import (
    CommentNotFoundError,
    DuplicatedParticipantError,
    DuplicatedTermError,
    FixedEventError,
    InvalidParameterError,
    NotFoundError,
    ParticipantNotFoundError,
    StorageError,
    TermNotFoundError,
)
from .models import ABSENCE, Comment, CommentID, Event, ParticipantID, TermID
from .shaping import shape_event

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("title", "description")


class _KeyedLocks:
    """asyncio locks keyed by event ID, dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class EventEngine:
    """Consistency engine for the Event aggregate.

    All public methods are coroutines returning the shaped event (see
    shape_event) or raising an EventError subclass.

    Example:
        >>> engine = EventEngine(InMemoryEventStore())
        >>> event = await engine.create("Dinner", "Friday or Saturday?")
        >>> event = await engine.add_term(event["id"], "Fri")
        >>> event = await engine.add_participant(event["id"], "alice", {1: "attendance"})
    """

    def __init__(self, store: EventStore) -> None:
        """Initialize the engine.

        Args:
            store: Document store holding the events
        """
        self.store = store
        self._locks = _KeyedLocks()

    # --- Helpers ---

    async def _load(self, event_id: int) -> Event:
        document = await self.store.read(event_id)
        if document is None:
            raise NotFoundError(event_id, gone=await self.store.allocated(event_id))
        return Event.from_document(document)

    async def _write(self, event: Event, *fields: str) -> dict[str, Any]:
        document = await self.store.set(event.id, event.document_fields(*fields))
        if document is None:
            logger.warning(
                "Store returned no document after write",
                extra={"event_id": event.id, "fields": list(fields)},
            )
            raise StorageError(f"Event {event.id} vanished during write", event_id=event.id)
        return shape_event(Event.from_document(document))

    @staticmethod
    def _ensure_unlocked(event: Event) -> None:
        if event.is_fixed:
            raise FixedEventError(event.id)

    # --- Event ---

    async def create(self, title: str, description: str) -> dict[str, Any]:
        """Create an empty event.

        Raises:
            StorageError: If the store could not allocate a document
        """
        document = await self.store.create(Event.new_document(title, description))
        if document is None:
            raise StorageError("Store could not allocate an event document")

        logger.info("Created event", extra={"event_id": document["id"]})
        return shape_event(Event.from_document(document))

    async def get(self, event_id: int) -> dict[str, Any]:
        """Get an event.

        Raises:
            NotFoundError: If the event does not exist
        """
        return shape_event(await self._load(event_id))

    async def put(self, event_id: int, data: Mapping[str, Any]) -> dict[str, Any]:
        """Update, fix or unfix an event depending on `data`.

        A `fixed` key must come alone: an empty value unfixes, any other value
        fixes the event to that term. Without `fixed`, title/description are
        updated.

        Raises:
            InvalidParameterError: If `fixed` is mixed with title/description
        """
        if "fixed" in data:
            if any(name in data for name in CONTENT_FIELDS):
                raise InvalidParameterError(
                    "fixed cannot be combined with title or description",
                    field_name="fixed",
                )

            fixed = data["fixed"]
            if fixed is None or fixed == "":
                return await self.unfix(event_id)
            try:
                term_id = TermID(int(fixed))
            except (TypeError, ValueError):
                raise InvalidParameterError(f"fixed must be a term ID, got {fixed!r}", "fixed")
            return await self.fix(event_id, term_id)

        return await self.update(
            event_id,
            title=data.get("title"),
            description=data.get("description"),
        )

    async def update(
        self,
        event_id: int,
        title: str | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Update title and/or description.

        Raises:
            NotFoundError: If the event does not exist
            FixedEventError: If the event is fixed
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)

            changed = []
            if title is not None:
                event.title = title
                changed.append("title")
            if description is not None:
                event.description = description
                changed.append("description")

            if not changed:
                return shape_event(event)

            self._ensure_unlocked(event)
            logger.debug("Updating event", extra={"event_id": event_id, "fields": changed})
            return await self._write(event, *changed)

    async def fix(self, event_id: int, term_id: TermID) -> dict[str, Any]:
        """Settle the event on `term_id`.

        Raises:
            FixedEventError: If the event is already fixed
            TermNotFoundError: If `term_id` is not a current term
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            self._ensure_unlocked(event)

            if term_id not in event.terms:
                raise TermNotFoundError(
                    term_id, gone=event.terms.in_range(term_id), event_id=event_id
                )

            event.fixed = term_id
            logger.info("Fixed event", extra={"event_id": event_id, "term_id": term_id})
            return await self._write(event, "fixed")

    async def unfix(self, event_id: int) -> dict[str, Any]:
        """Clear the settled term. Unfixing an undecided event is a no-op.

        Raises:
            NotFoundError: If the event does not exist
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)

            document = await self.store.unset(event_id, "fixed")
            if document is None:
                raise StorageError(f"Event {event_id} vanished during unfix", event_id=event_id)

            if event.is_fixed:
                logger.info("Unfixed event", extra={"event_id": event_id})
            return shape_event(Event.from_document(document))

    async def delete(self, event_id: int) -> None:
        """Delete an event.

        Raises:
            NotFoundError: If the event does not exist
        """
        async with self._locks.hold(event_id):
            if not await self.store.delete(event_id):
                raise NotFoundError(event_id, gone=await self.store.allocated(event_id))

        logger.info("Deleted event", extra={"event_id": event_id})

    # --- Terms ---

    async def add_term(self, event_id: int, name: str) -> dict[str, Any]:
        """Add a term and seed "absence" for every participant.

        Raises:
            FixedEventError: If the event is fixed
            DuplicatedTermError: If a term with `name` exists
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            self._ensure_unlocked(event)

            existing_id = event.terms.key_of(name)
            if existing_id is not None:
                raise DuplicatedTermError(event_id, name, existing_id)

            term_id = TermID(event.terms.allocate())
            event.terms.entries[term_id] = name

            for row in event.record.values():
                row[term_id] = ABSENCE

            logger.debug("Adding term", extra={"event_id": event_id, "term_id": term_id})
            return await self._write(event, "terms", "record")

    async def update_term(
        self,
        event_id: int,
        term_id: TermID,
        name: str | None = None,
    ) -> dict[str, Any]:
        """Rename a term.

        Raises:
            FixedEventError: If the event is fixed
            TermNotFoundError: If `term_id` is not a current term
            DuplicatedTermError: If another term already has `name`
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            if name is None:
                return shape_event(event)

            self._ensure_unlocked(event)

            if term_id not in event.terms:
                raise TermNotFoundError(
                    term_id, gone=event.terms.in_range(term_id), event_id=event_id
                )

            existing_id = event.terms.key_of(name)
            if existing_id is not None and existing_id != term_id:
                raise DuplicatedTermError(event_id, name, existing_id)

            event.terms.entries[term_id] = name

            logger.debug("Renaming term", extra={"event_id": event_id, "term_id": term_id})
            return await self._write(event, "terms")

    async def delete_term(self, event_id: int, term_id: TermID) -> dict[str, Any]:
        """Delete a term and its record cells.

        Raises:
            FixedEventError: If the event is fixed
            TermNotFoundError: If `term_id` was never allocated
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            self._ensure_unlocked(event)

            if not event.terms.in_range(term_id):
                raise TermNotFoundError(term_id, event_id=event_id)

            if term_id not in event.terms:
                return shape_event(event)

            del event.terms.entries[term_id]
            for row in event.record.values():
                row.pop(term_id, None)

            logger.debug("Deleting term", extra={"event_id": event_id, "term_id": term_id})
            return await self._write(event, "terms", "record")

    # --- Participants ---

    async def add_participant(
        self,
        event_id: int,
        name: str,
        availability: Mapping[int, str] | None = None,
    ) -> dict[str, Any]:
        """Add a participant with a record row covering every current term.

        Args:
            event_id: Event identifier
            name: Participant name
            availability: Per-term values; missing terms default to "absence",
                unknown term IDs are ignored

        Raises:
            FixedEventError: If the event is fixed
            DuplicatedParticipantError: If a participant with `name` exists
        """
        availability = availability or {}

        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            self._ensure_unlocked(event)

            existing_id = event.participants.key_of(name)
            if existing_id is not None:
                raise DuplicatedParticipantError(event_id, name, existing_id)

            participant_id = ParticipantID(event.participants.allocate())
            event.participants.entries[participant_id] = name
            event.record[participant_id] = {
                term_id: availability.get(term_id, ABSENCE) for term_id in event.terms.entries
            }

            logger.debug(
                "Adding participant",
                extra={"event_id": event_id, "participant_id": participant_id},
            )
            return await self._write(event, "participants", "record")

    async def update_participant(
        self,
        event_id: int,
        participant_id: ParticipantID,
        name: str | None = None,
        availability: Mapping[int, str] | None = None,
    ) -> dict[str, Any]:
        """Rename a participant and/or change their availability.

        Supplying nothing returns the event untouched, before the lock and
        existence checks. Unknown term IDs in `availability` are ignored.

        Raises:
            FixedEventError: If the event is fixed
            ParticipantNotFoundError: If `participant_id` is not current
            DuplicatedParticipantError: If another participant has `name`
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            if name is None and not availability:
                return shape_event(event)

            self._ensure_unlocked(event)

            if participant_id not in event.participants:
                raise ParticipantNotFoundError(
                    participant_id,
                    gone=event.participants.in_range(participant_id),
                    event_id=event_id,
                )

            if name is not None:
                existing_id = event.participants.key_of(name)
                if existing_id is not None and existing_id != participant_id:
                    raise DuplicatedParticipantError(event_id, name, existing_id)
                event.participants.entries[participant_id] = name

            row = event.record.setdefault(participant_id, {})
            for term_id, value in (availability or {}).items():
                if term_id in event.terms:
                    row[TermID(term_id)] = value

            logger.debug(
                "Updating participant",
                extra={"event_id": event_id, "participant_id": participant_id},
            )
            return await self._write(event, "participants", "record")

    async def delete_participant(
        self,
        event_id: int,
        participant_id: ParticipantID,
    ) -> dict[str, Any]:
        """Delete a participant and their record row.

        Raises:
            FixedEventError: If the event is fixed
            ParticipantNotFoundError: If `participant_id` was never allocated
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            self._ensure_unlocked(event)

            if not event.participants.in_range(participant_id):
                raise ParticipantNotFoundError(participant_id, event_id=event_id)

            if participant_id not in event.participants:
                return shape_event(event)

            del event.participants.entries[participant_id]
            event.record.pop(participant_id, None)

            logger.debug(
                "Deleting participant",
                extra={"event_id": event_id, "participant_id": participant_id},
            )
            return await self._write(event, "participants", "record")

    # --- Comments ---
    # Comments ignore the fixed lock.

    async def add_comment(self, event_id: int, name: str, body: str) -> dict[str, Any]:
        """Add a comment."""
        async with self._locks.hold(event_id):
            event = await self._load(event_id)

            comment_id = CommentID(event.comments.allocate())
            event.comments.entries[comment_id] = Comment(name=name, body=body)

            logger.debug("Adding comment", extra={"event_id": event_id, "comment_id": comment_id})
            return await self._write(event, "comments")

    async def update_comment(
        self,
        event_id: int,
        comment_id: CommentID,
        name: str | None = None,
        body: str | None = None,
    ) -> dict[str, Any]:
        """Edit the supplied fields of a comment.

        Raises:
            CommentNotFoundError: If `comment_id` is not a current comment
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)
            if name is None and body is None:
                return shape_event(event)

            comment = event.comments.entries.get(comment_id)
            if comment is None:
                raise CommentNotFoundError(
                    comment_id, gone=event.comments.in_range(comment_id), event_id=event_id
                )

            if name is not None:
                comment.name = name
            if body is not None:
                comment.body = body

            logger.debug("Updating comment", extra={"event_id": event_id, "comment_id": comment_id})
            return await self._write(event, "comments")

    async def delete_comment(self, event_id: int, comment_id: CommentID) -> dict[str, Any]:
        """Delete a comment.

        Raises:
            CommentNotFoundError: If `comment_id` was never allocated
        """
        async with self._locks.hold(event_id):
            event = await self._load(event_id)

            if not event.comments.in_range(comment_id):
                raise CommentNotFoundError(comment_id, event_id=event_id)

            if comment_id not in event.comments:
                return shape_event(event)

            del event.comments.entries[comment_id]

            logger.debug("Deleting comment", extra={"event_id": event_id, "comment_id": comment_id})
            return await self._write(event, "comments")
