"""
Planner Event Server - scheduling coordination for group events.

This package implements a small document-backed service where an Event holds:
- Terms: candidate time slots
- Participants: invitees declaring per-term availability
- Record: the participant x term availability matrix
- Comments: free-text notes, writable even after a decision
- Fixed: the settled term, which locks scheduling changes

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Client    │────▶│  HTTP API   │────▶│ Request models  │
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                                                     ▼
                                            ┌─────────────────┐
                                            │   EventEngine   │
                                            └────────┬────────┘
                                                     │
                                  ┌──────────────────┴─────────────┐
                                  ▼                                ▼
                           ┌─────────────┐                  ┌─────────────┐
                           │   SQLite    │                  │  In-memory  │
                           │   store     │                  │   store     │
                           └─────────────┘                  └─────────────┘

Invariants:
    - Per-collection counters only grow; deleted IDs are never reused
    - The record matrix has a cell exactly for each current (participant, term)
    - A fixed event rejects term, participant, title and description changes
    - Counters never leave the engine

How to change safely:
    - New mutations must read, check, then write in one engine operation
    - Keep error codes stable, the HTTP layer maps them to statuses
    - Stored document layout changes need a migration for existing rows
"""

from ._version import __version__

__all__ = ["__version__"]
