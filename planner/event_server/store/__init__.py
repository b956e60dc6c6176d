"""
Store module - persistence for event documents.

This module provides:
- EventStore protocol consumed by the engine
- SQLite store (production)
- In-memory store (tests and local development)

Invariants:
    - One document per event, addressed by an integer ID
    - Event IDs are never reused
"""

from .base import (
    EventStore,
    StoreError,
    StoreNotInitializedError,
    create_event_store,
)
from .memory import InMemoryEventStore
from .sqlite_store import SqliteEventStore

__all__ = [
    "EventStore",
    "StoreError",
    "StoreNotInitializedError",
    "create_event_store",
    "InMemoryEventStore",
    "SqliteEventStore",
]
