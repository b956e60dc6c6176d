"""
Planner Event Server Test Suite.

This package contains:
- unit/: Unit tests (engine, request models, in-memory store)
- integration/: Integration tests (SQLite store, HTTP API)
"""
