"""
Base protocol for event document stores.

This module defines the EventStore protocol that every backend implements.
The engine only talks to stores through this protocol.

Invariants:
    - Event IDs come from a per-store sequence and are never reused
    - Documents returned by a store carry their integer `id`
    - `set` replaces whole top-level fields, it never merges inside them
    - A missing event is reported as None (or False for delete), not raised

How to change safely:
    - Protocol changes require updating all implementations
    - Keep the in-memory store behaviour identical to the SQLite store
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import ServerConfig


class StoreError(Exception):
    """Base exception for store operations."""
    pass


class StoreNotInitializedError(StoreError):
    """The backing database was never initialized."""
    pass


@runtime_checkable
class EventStore(Protocol):
    """Document store holding one document per event.

    Example:
        >>> store = InMemoryEventStore()
        >>> doc = await store.create({"title": "Dinner", ...})
        >>> doc = await store.set(doc["id"], {"title": "Lunch"})
    """

    async def initialize(self) -> None:
        """Prepare the backing storage (idempotent)."""
        ...

    async def create(self, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Allocate a new event ID and store `document` under it.

        Returns:
            The stored document including its `id`
        """
        ...

    async def read(self, event_id: int) -> Optional[Dict[str, Any]]:
        """Return the event document, or None if there is none."""
        ...

    async def set(self, event_id: int, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace the top-level fields named in `partial`.

        Returns:
            The full document after the write, or None if the event is missing
        """
        ...

    async def unset(self, event_id: int, field_name: str) -> Optional[Dict[str, Any]]:
        """Remove one top-level field.

        Returns:
            The full document after the write, or None if the event is missing
        """
        ...

    async def delete(self, event_id: int) -> bool:
        """Delete an event. Returns False if it did not exist."""
        ...

    async def allocated(self, event_id: int) -> bool:
        """Whether `event_id` was ever handed out by this store."""
        ...

    async def get_stats(self) -> Dict[str, int]:
        """Return the live event count and the current sequence value."""
        ...


def create_event_store(config: ServerConfig) -> EventStore:
    """Create the store backend selected by configuration.

    Args:
        config: Server configuration

    Returns:
        Store instance (SQLite stores still need `initialize()`)
    """
    from ..config import StoreBackend

    if config.storage.backend == StoreBackend.SQLITE:
        from .sqlite_store import SqliteEventStore

        return SqliteEventStore(
            data_dir=config.storage.data_dir,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
            cache_size_pages=config.storage.cache_size_pages,
        )
    elif config.storage.backend == StoreBackend.MEMORY:
        from .memory import InMemoryEventStore

        return InMemoryEventStore()
    else:
        raise ValueError(f"Unknown store backend: {config.storage.backend}")
