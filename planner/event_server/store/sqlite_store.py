"""
SQLite document store for events.

This module keeps every event document in a single SQLite database:
- One row per event holding the JSON document
- A counters table holding the event ID sequence

Invariants:
    - The events sequence only grows; deleted IDs stay allocated
    - Every write is one transaction (BEGIN IMMEDIATE ... COMMIT)
    - `set` replaces whole top-level fields of the stored document

How to change safely:
    - Schema migrations must be backward compatible
    - Use transactions for all write operations
    - Keep behaviour in sync with InMemoryEventStore

Table schema:
    events:
        - id INTEGER PRIMARY KEY
        - document_json TEXT
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)

    counters:
        - name TEXT PRIMARY KEY
        - seq INTEGER
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .base import StoreNotInitializedError

logger = logging.getLogger(__name__)

EVENTS_SEQUENCE = "events"


class SqliteEventStore:
    """SQLite-backed implementation of EventStore.

    Thread safety:
        Each database connection is created per-operation.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = SqliteEventStore("/var/lib/planner")
        >>> await store.initialize()
        >>> doc = await store.create({"title": "Dinner", "description": ""})
        >>> doc["id"]
        1
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    DB_FILENAME = "events.db"

    def __init__(
        self,
        data_dir: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -16000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for the SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.DB_FILENAME

    @contextmanager
    def _get_connection(self, create: bool = False) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Args:
            create: Whether to create the database if it does not exist

        Yields:
            SQLite connection

        Raises:
            StoreNotInitializedError: If database doesn't exist and create=False
        """
        if not create and not self.db_path.exists():
            raise StoreNotInitializedError(f"Event database not found: {self.db_path}")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY,
                document_json TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS counters (
                name TEXT PRIMARY KEY,
                seq INTEGER NOT NULL DEFAULT 0
            );

            INSERT OR IGNORE INTO counters (name, seq) VALUES ('events', 0);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        async with self._lock:
            with self._get_connection(create=True) as conn:
                self._create_schema(conn)
                logger.info(f"Initialized event database: {self.db_path}")

    @staticmethod
    def _to_document(row: sqlite3.Row) -> dict[str, Any]:
        document = json.loads(row["document_json"])
        document["id"] = row["id"]
        return document

    async def create(self, document: dict[str, Any]) -> dict[str, Any] | None:
        """Allocate the next event ID and insert `document`.

        Args:
            document: Event document without an `id`

        Returns:
            Stored document with its `id`
        """
        now = int(time.time() * 1000)
        body = {k: v for k, v in document.items() if k != "id"}

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.execute(
                    "UPDATE counters SET seq = seq + 1 WHERE name = ?",
                    (EVENTS_SEQUENCE,),
                )
                row = conn.execute(
                    "SELECT seq FROM counters WHERE name = ?",
                    (EVENTS_SEQUENCE,),
                ).fetchone()
                if row is None:
                    conn.execute("ROLLBACK")
                    return None
                event_id = row["seq"]

                conn.execute(
                    """
                    INSERT INTO events (id, document_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (event_id, json.dumps(body), now, now),
                )

                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.debug("Created event document", extra={"event_id": event_id})

        return {**body, "id": event_id}

    async def read(self, event_id: int) -> dict[str, Any] | None:
        """Get an event document by ID.

        Args:
            event_id: Event identifier

        Returns:
            Document or None if not found
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id, document_json FROM events WHERE id = ?",
                (event_id,),
            ).fetchone()
            if not row:
                return None
            return self._to_document(row)

    async def set(self, event_id: int, partial: dict[str, Any]) -> dict[str, Any] | None:
        """Replace top-level fields of an event document.

        Args:
            event_id: Event identifier
            partial: Top-level fields to replace

        Returns:
            Updated document or None if not found
        """
        return await self._rewrite(event_id, lambda document: document.update(partial))

    async def unset(self, event_id: int, field_name: str) -> dict[str, Any] | None:
        """Remove a top-level field from an event document.

        Args:
            event_id: Event identifier
            field_name: Field to remove

        Returns:
            Updated document or None if not found
        """
        return await self._rewrite(event_id, lambda document: document.pop(field_name, None))

    async def _rewrite(
        self,
        event_id: int,
        mutate: Callable[[dict[str, Any]], Any],
    ) -> dict[str, Any] | None:
        now = int(time.time() * 1000)

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT id, document_json FROM events WHERE id = ?",
                    (event_id,),
                ).fetchone()
                if not row:
                    conn.execute("ROLLBACK")
                    return None

                document = json.loads(row["document_json"])
                mutate(document)
                document.pop("id", None)

                conn.execute(
                    "UPDATE events SET document_json = ?, updated_at = ? WHERE id = ?",
                    (json.dumps(document), now, event_id),
                )

                conn.execute("COMMIT")

            except Exception:
                conn.execute("ROLLBACK")
                raise

        document["id"] = event_id
        return document

    async def delete(self, event_id: int) -> bool:
        """Delete an event document.

        Args:
            event_id: Event identifier

        Returns:
            True if deleted, False if not found
        """
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug("Deleted event document", extra={"event_id": event_id})
        return deleted

    async def allocated(self, event_id: int) -> bool:
        """Whether `event_id` lies within the allocated sequence."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT seq FROM counters WHERE name = ?",
                (EVENTS_SEQUENCE,),
            ).fetchone()
            return row is not None and 1 <= event_id <= row["seq"]

    async def get_stats(self) -> dict[str, int]:
        """Get event counts.

        Returns:
            Dictionary with live event count and the sequence value
        """
        with self._get_connection() as conn:
            stats = {}

            cursor = conn.execute("SELECT COUNT(*) FROM events")
            stats["events"] = cursor.fetchone()[0]

            cursor = conn.execute(
                "SELECT seq FROM counters WHERE name = ?", (EVENTS_SEQUENCE,)
            )
            row = cursor.fetchone()
            stats["sequence"] = row[0] if row else 0

            return stats
