"""
Event aggregate data model.

An Event document is a single JSON object. Each keyed collection is stored as
an explicit allocation cursor plus an entry map:

    {
        "title": "Team dinner",
        "description": "",
        "fixed": 2,                              # optional
        "terms": {"counter": 2, "entries": {"1": "Fri", "2": "Sat"}},
        "participants": {"counter": 1, "entries": {"1": "alice"}},
        "record": {"1": {"1": "absence", "2": "attendance"}},
        "comments": {"counter": 0, "entries": {}}
    }

JSON object keys are strings, so IDs are converted to int on load and back to
decimal strings on dump.

Invariants:
    - `counter` is the highest ID ever allocated in its collection
    - Entry maps keep insertion order, which is also lookup order
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, NewType, TypeVar

TermID = NewType("TermID", int)
ParticipantID = NewType("ParticipantID", int)
CommentID = NewType("CommentID", int)

ABSENCE = "absence"

K = TypeVar("K", bound=int)
V = TypeVar("V")


@dataclass
class Comment:
    """A free-text note on an event."""

    name: str
    body: str

    def to_document(self) -> dict[str, str]:
        return {"name": self.name, "body": self.body}

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Comment:
        return cls(name=data["name"], body=data["body"])


@dataclass
class Collection(Generic[K, V]):
    """Entries keyed by sequential IDs plus the allocation cursor.

    Attributes:
        counter: Highest ID ever allocated
        entries: Current entries in insertion order
    """

    counter: int = 0
    entries: dict[K, V] = field(default_factory=dict)

    def allocate(self) -> int:
        """Reserve the next ID. IDs are never handed out twice."""
        self.counter += 1
        return self.counter

    def in_range(self, key: int) -> bool:
        """Whether `key` was ever allocated."""
        return 1 <= key <= self.counter

    def key_of(self, value: V) -> K | None:
        """Return the first ID whose entry equals `value`."""
        for key, entry in self.entries.items():
            if entry == value:
                return key
        return None

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def to_document(self, encode: Callable[[V], Any] | None = None) -> dict[str, Any]:
        return {
            "counter": self.counter,
            "entries": {
                str(key): encode(value) if encode else value
                for key, value in self.entries.items()
            },
        }

    @classmethod
    def from_document(
        cls,
        data: dict[str, Any] | None,
        decode: Callable[[Any], V] | None = None,
    ) -> Collection[K, V]:
        data = data or {}
        entries = {
            int(key): decode(value) if decode else value
            for key, value in data.get("entries", {}).items()
        }
        return cls(counter=int(data.get("counter", 0)), entries=entries)


@dataclass
class Event:
    """Root scheduling aggregate.

    Attributes:
        id: Store-assigned event ID
        title: Event title
        description: Event description
        terms: Candidate time slots
        participants: Invitees
        record: Availability matrix, record[participant][term]
        comments: Free-text notes
        fixed: Settled term ID, None while undecided
    """

    id: int
    title: str
    description: str
    terms: Collection[TermID, str] = field(default_factory=Collection)
    participants: Collection[ParticipantID, str] = field(default_factory=Collection)
    record: dict[ParticipantID, dict[TermID, str]] = field(default_factory=dict)
    comments: Collection[CommentID, Comment] = field(default_factory=Collection)
    fixed: TermID | None = None

    @property
    def is_fixed(self) -> bool:
        return self.fixed is not None

    @staticmethod
    def new_document(title: str, description: str) -> dict[str, Any]:
        """Build the document for a freshly created, empty event."""
        return {
            "title": title,
            "description": description,
            "terms": Collection().to_document(),
            "participants": Collection().to_document(),
            "record": {},
            "comments": Collection().to_document(),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Event:
        """Load an event from a store document (which carries its `id`)."""
        fixed = document.get("fixed")
        record = {
            ParticipantID(int(participant_id)): {
                TermID(int(term_id)): value for term_id, value in row.items()
            }
            for participant_id, row in document.get("record", {}).items()
        }
        return cls(
            id=int(document["id"]),
            title=document.get("title", ""),
            description=document.get("description", ""),
            terms=Collection.from_document(document.get("terms")),
            participants=Collection.from_document(document.get("participants")),
            record=record,
            comments=Collection.from_document(document.get("comments"), Comment.from_document),
            fixed=TermID(int(fixed)) if fixed not in (None, "") else None,
        )

    def document_fields(self, *names: str) -> dict[str, Any]:
        """Serialize the named top-level fields as a partial document."""
        encoders: dict[str, Callable[[], Any]] = {
            "title": lambda: self.title,
            "description": lambda: self.description,
            "fixed": lambda: self.fixed,
            "terms": self.terms.to_document,
            "participants": self.participants.to_document,
            "record": lambda: {
                str(participant_id): {str(term_id): value for term_id, value in row.items()}
                for participant_id, row in self.record.items()
            },
            "comments": lambda: self.comments.to_document(Comment.to_document),
        }
        return {name: encoders[name]() for name in names}
