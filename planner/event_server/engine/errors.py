"""
Error types for the event engine.

This module defines every exception kind an engine operation can raise:
- EventError: Base exception
- InvalidParameterError: Malformed or conflicting caller input
- FixedEventError: Mutation attempted on a fixed event
- DuplicatedTermError / DuplicatedParticipantError: Name collision
- TermNotFoundError / ParticipantNotFoundError / CommentNotFoundError
- NotFoundError: The event itself is missing
- StorageError: The store failed to return a document after a write

Invariants:
    - All errors inherit from EventError
    - `code` is the class name and is stable; transports map on it
    - Not-found errors say whether the ID was once valid (`gone`)
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union


class EventError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Error message
        code: Error kind for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "EventError"
        self.details = details or {}


class InvalidParameterError(EventError):
    """Caller input is malformed or contradicts itself.

    Raised when:
    - `fixed` is not a term ID
    - `fixed` is combined with title/description edits
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="InvalidParameterError",
            details={"field": field_name},
        )
        self.field_name = field_name


class FixedEventError(EventError):
    """The event is fixed and the mutation is locked."""

    def __init__(self, event_id: int) -> None:
        super().__init__(
            f"Event {event_id} is fixed",
            code="FixedEventError",
            details={"event_id": event_id},
        )
        self.event_id = event_id


class _DuplicatedNameError(EventError):
    kind = ""

    def __init__(self, event_id: int, name: str, existing_id: int) -> None:
        super().__init__(
            f"{self.kind.capitalize()} '{name}' already exists in event {event_id}",
            code=type(self).__name__,
            details={"event_id": event_id, "name": name, "existing_id": existing_id},
        )
        self.event_id = event_id
        self.name = name
        self.existing_id = existing_id


class DuplicatedTermError(_DuplicatedNameError):
    """A term with the same name already exists."""

    kind = "term"


class DuplicatedParticipantError(_DuplicatedNameError):
    """A participant with the same name already exists."""

    kind = "participant"


class NotFoundError(EventError):
    """Resource not found.

    Attributes:
        resource_type: "event", "term", "participant" or "comment"
        resource_id: The requested ID
        gone: True if the ID was allocated once and has since been deleted
    """

    resource_type = "event"

    def __init__(
        self,
        resource_id: Union[int, str],
        gone: bool = False,
        event_id: Optional[int] = None,
    ) -> None:
        state = "was deleted" if gone else "does not exist"
        where = f" in event {event_id}" if event_id is not None else ""
        super().__init__(
            f"{self.resource_type.capitalize()} {resource_id}{where} {state}",
            code=type(self).__name__,
            details={
                "resource_type": self.resource_type,
                "resource_id": resource_id,
                "event_id": event_id,
                "gone": gone,
            },
        )
        self.resource_id = resource_id
        self.gone = gone
        self.event_id = event_id


class TermNotFoundError(NotFoundError):
    """Term ID is not a current term of the event."""

    resource_type = "term"


class ParticipantNotFoundError(NotFoundError):
    """Participant ID is not a current participant of the event."""

    resource_type = "participant"


class CommentNotFoundError(NotFoundError):
    """Comment ID is not a current comment of the event."""

    resource_type = "comment"


class StorageError(EventError):
    """The store returned no document where one was expected.

    Treated as an unrecoverable server-side fault; never retried.
    """

    def __init__(self, message: str, event_id: Optional[int] = None) -> None:
        super().__init__(
            message,
            code="StorageError",
            details={"event_id": event_id},
        )
        self.event_id = event_id
