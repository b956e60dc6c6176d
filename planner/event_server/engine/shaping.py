"""
Response shaping for events.

Turns an Event into the plain mapping handed to callers. Allocation counters
are dropped here: `terms`, `participants` and `comments` come out as bare
entry maps.
"""

from __future__ import annotations

from typing import Any

from .models import Event


def shape_event(event: Event) -> dict[str, Any]:
    """Return the caller-facing view of `event`.

    Args:
        event: Loaded event aggregate

    Returns:
        Dict with id, title, description, terms, participants, record,
        comments, and fixed when the event is fixed.
    """
    shaped: dict[str, Any] = {
        "id": event.id,
        "title": event.title,
        "description": event.description,
    }
    if event.fixed is not None:
        shaped["fixed"] = event.fixed

    shaped["terms"] = dict(event.terms.entries)
    shaped["participants"] = dict(event.participants.entries)
    shaped["record"] = {
        participant_id: dict(row) for participant_id, row in event.record.items()
    }
    shaped["comments"] = {
        comment_id: comment.to_document()
        for comment_id, comment in event.comments.entries.items()
    }
    return shaped
