"""
API module for the Planner Event Server.

This module provides the external interface:
- HTTP/JSON API (FastAPI)
- Request body models (pydantic)

Invariants:
    - Every request body is bound to a model before the engine runs
    - Engine error kinds map to HTTP statuses in status_for()
    - Body validation failures are reported as InvalidParameterError (400)
"""

from .http_server import create_app, router, status_for

__all__ = [
    "create_app",
    "router",
    "status_for",
]
