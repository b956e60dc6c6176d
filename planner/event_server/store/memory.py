"""
In-memory event store implementation for testing.

This module provides a simple in-memory EventStore backend for:
- Unit tests
- Integration tests of the HTTP layer
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Documents are deep-copied in and out, callers never share state with the store
    - Same ID sequence semantics as the SQLite store

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with EventStore protocol
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class InMemoryEventStore:
    """In-memory implementation of EventStore for testing.

    Attributes:
        sequence: Highest event ID handed out so far

    Example:
        >>> store = InMemoryEventStore.from_documents(
        ...     [{"id": 1, "title": "first", ...}],
        ...     sequence=3,
        ... )
        >>> await store.allocated(2)   # deleted before the fixture was taken
        True
    """

    def __init__(self) -> None:
        self.sequence = 0
        self._documents: Dict[int, Dict[str, Any]] = {}

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Dict[str, Any]],
        sequence: Optional[int] = None,
    ) -> InMemoryEventStore:
        """Create a store pre-populated with documents.

        Args:
            documents: Documents, each carrying its `id`
            sequence: Sequence value; defaults to the highest document ID

        Returns:
            Populated store
        """
        store = cls()
        for document in documents:
            body = copy.deepcopy(document)
            event_id = int(body.pop("id"))
            store._documents[event_id] = body
        store.sequence = sequence if sequence is not None else max(store._documents, default=0)
        return store

    def _export(self, event_id: int) -> Dict[str, Any]:
        document = copy.deepcopy(self._documents[event_id])
        document["id"] = event_id
        return document

    async def initialize(self) -> None:
        """Nothing to prepare in memory."""
        logger.debug("InMemoryEventStore initialized")

    async def create(self, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.sequence += 1
        event_id = self.sequence
        self._documents[event_id] = {
            k: copy.deepcopy(v) for k, v in document.items() if k != "id"
        }
        return self._export(event_id)

    async def read(self, event_id: int) -> Optional[Dict[str, Any]]:
        if event_id not in self._documents:
            return None
        return self._export(event_id)

    async def set(self, event_id: int, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if event_id not in self._documents:
            return None
        for key, value in partial.items():
            if key != "id":
                self._documents[event_id][key] = copy.deepcopy(value)
        return self._export(event_id)

    async def unset(self, event_id: int, field_name: str) -> Optional[Dict[str, Any]]:
        if event_id not in self._documents:
            return None
        self._documents[event_id].pop(field_name, None)
        return self._export(event_id)

    async def delete(self, event_id: int) -> bool:
        return self._documents.pop(event_id, None) is not None

    async def allocated(self, event_id: int) -> bool:
        return 1 <= event_id <= self.sequence

    async def get_stats(self) -> Dict[str, int]:
        return {"events": len(self._documents), "sequence": self.sequence}

    def snapshot(self, event_id: int) -> Dict[str, Any]:
        """Raw stored document, counters included (test helper)."""
        return self._export(event_id)
