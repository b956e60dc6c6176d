"""
Engine module - the Event aggregate and its consistency rules.

This module provides:
- Event data model (terms, participants, record, comments, fixed)
- EventEngine, one coroutine per mutation kind
- Error taxonomy used by transports to pick status codes
- Response shaping that strips allocation counters

Invariants:
    - Every engine result passes through shape_event
    - Failures are raised before any store write
"""

from .aggregate import EventEngine
from .errors import (
    CommentNotFoundError,
    DuplicatedParticipantError,
    DuplicatedTermError,
    EventError,
    FixedEventError,
    InvalidParameterError,
    NotFoundError,
    ParticipantNotFoundError,
    StorageError,
    TermNotFoundError,
)
from .models import ABSENCE, Collection, Comment, CommentID, Event, ParticipantID, TermID
from .shaping import shape_event

__all__ = [
    "EventEngine",
    "EventError",
    "InvalidParameterError",
    "FixedEventError",
    "DuplicatedTermError",
    "DuplicatedParticipantError",
    "NotFoundError",
    "TermNotFoundError",
    "ParticipantNotFoundError",
    "CommentNotFoundError",
    "StorageError",
    "ABSENCE",
    "Collection",
    "Comment",
    "CommentID",
    "Event",
    "ParticipantID",
    "TermID",
    "shape_event",
]
