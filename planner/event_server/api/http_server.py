"""
HTTP server implementation for the Planner Event Server.

This module exposes the EventEngine as a JSON REST API:
- Request bodies are bound to pydantic models (schemas.py) before the engine runs
- Engine errors become {"error": "<ErrorKind>"} with a matching status code

Invariants:
    - Handlers never touch the store directly, only the engine
    - Error kinds map to statuses in one place (status_for)
    - Not-found errors are 410 when the ID was valid once, 404 otherwise

How to change safely:
    - New routes must declare their body as a model from schemas.py
    - Keep error codes stable, clients switch on them
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..engine import (
    DuplicatedParticipantError,
    DuplicatedTermError,
    EventEngine,
    EventError,
    FixedEventError,
    InvalidParameterError,
    NotFoundError,
    StorageError,
)
from ..store import create_event_store
from .schemas import (
    CommentCreateRequest,
    CommentUpdateRequest,
    EventCreateRequest,
    EventPutRequest,
    ParticipantCreateRequest,
    ParticipantUpdateRequest,
    TermCreateRequest,
    TermUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["Events"])

_STATUS_BY_ERROR: tuple[tuple[type[EventError], int], ...] = (
    (InvalidParameterError, 400),
    (FixedEventError, 409),
    (DuplicatedTermError, 409),
    (DuplicatedParticipantError, 409),
    (StorageError, 500),
)


def status_for(error: EventError) -> int:
    """HTTP status for an engine error."""
    if isinstance(error, NotFoundError):
        return 410 if error.gone else 404
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


def path_id(raw: str) -> int:
    """Parse a path ID. Anything but a decimal number maps to 0, which is never allocated."""
    if raw.isascii() and raw.isdigit():
        return int(raw)
    return 0


# --- Dependencies ---


def get_engine(request: Request) -> EventEngine:
    """Get engine from app state."""
    return request.app.state.engine


# --- Event Routes ---


@router.post("", status_code=201)
async def create_event(
    body: EventCreateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Create an event."""
    return await engine.create(body.title, body.description)


@router.get("/{event_id}")
async def get_event(event_id: str, engine: EventEngine = Depends(get_engine)):
    """Get an event."""
    return await engine.get(path_id(event_id))


@router.put("/{event_id}")
async def put_event(
    event_id: str,
    body: EventPutRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Update title/description, or fix/unfix the event via `fixed`."""
    return await engine.put(path_id(event_id), body.to_data())


@router.delete("/{event_id}", status_code=204)
async def delete_event(event_id: str, engine: EventEngine = Depends(get_engine)):
    """Delete an event."""
    await engine.delete(path_id(event_id))
    return Response(status_code=204)


# --- Term Routes ---


@router.post("/{event_id}/terms", status_code=201)
async def add_term(
    event_id: str,
    body: TermCreateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Add a candidate term."""
    return await engine.add_term(path_id(event_id), body.term)


@router.put("/{event_id}/terms/{term_id}")
async def update_term(
    event_id: str,
    term_id: str,
    body: TermUpdateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Rename a term."""
    return await engine.update_term(path_id(event_id), path_id(term_id), body.term)


@router.delete("/{event_id}/terms/{term_id}")
async def delete_term(event_id: str, term_id: str, engine: EventEngine = Depends(get_engine)):
    """Delete a term."""
    return await engine.delete_term(path_id(event_id), path_id(term_id))


# --- Participant Routes ---


@router.post("/{event_id}/participants", status_code=201)
async def add_participant(
    event_id: str,
    body: ParticipantCreateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Add a participant, optionally with availability keyed by term ID."""
    return await engine.add_participant(path_id(event_id), body.name, body.availability)


@router.put("/{event_id}/participants/{participant_id}")
async def update_participant(
    event_id: str,
    participant_id: str,
    body: ParticipantUpdateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Rename a participant and/or update their availability."""
    return await engine.update_participant(
        path_id(event_id),
        path_id(participant_id),
        name=body.name,
        availability=body.availability,
    )


@router.delete("/{event_id}/participants/{participant_id}")
async def delete_participant(
    event_id: str,
    participant_id: str,
    engine: EventEngine = Depends(get_engine),
):
    """Delete a participant."""
    return await engine.delete_participant(path_id(event_id), path_id(participant_id))


# --- Comment Routes ---


@router.post("/{event_id}/comments", status_code=201)
async def add_comment(
    event_id: str,
    body: CommentCreateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Add a comment. Allowed on fixed events."""
    return await engine.add_comment(path_id(event_id), body.name, body.body)


@router.put("/{event_id}/comments/{comment_id}")
async def update_comment(
    event_id: str,
    comment_id: str,
    body: CommentUpdateRequest,
    engine: EventEngine = Depends(get_engine),
):
    """Edit a comment."""
    return await engine.update_comment(
        path_id(event_id),
        path_id(comment_id),
        name=body.name,
        body=body.body,
    )


@router.delete("/{event_id}/comments/{comment_id}")
async def delete_comment(
    event_id: str,
    comment_id: str,
    engine: EventEngine = Depends(get_engine),
):
    """Delete a comment."""
    return await engine.delete_comment(path_id(event_id), path_id(comment_id))


# --- Application ---


async def handle_event_error(request: Request, exc: EventError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"Engine failure: {exc.message}", extra={"path": request.url.path})
    else:
        logger.debug(
            "Request rejected",
            extra={"path": request.url.path, "error": exc.code, "details": exc.details},
        )
    return JSONResponse({"error": exc.code}, status_code=status)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug(
        "Request body rejected",
        extra={"path": request.url.path, "errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse({"error": "InvalidParameterError"}, status_code=400)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"HTTP handler error: {exc}", exc_info=True)
    return JSONResponse({"error": "InternalError"}, status_code=500)


def create_app(
    engine: EventEngine | None = None,
    config: ServerConfig | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        engine: Engine to serve; built from configuration at startup if omitted
        config: Server configuration (loaded from env if not provided)

    Returns:
        FastAPI application
    """
    config = config or ServerConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if engine is None:
            store = create_event_store(config)
            await store.initialize()
            app.state.engine = EventEngine(store)
        else:
            app.state.engine = engine
        yield

    app = FastAPI(
        title="Planner Event Server",
        description="Schedule coordination: terms, participants, availability and comments.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.http.cors_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EventError, handle_event_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)

    @app.get("/health")
    async def health(request: Request):
        stats = await request.app.state.engine.store.get_stats()
        return {"status": "healthy", "service": "planner-event-server", **stats}

    return app
