"""
Request models for the HTTP API.

Every request body is bound to one of these pydantic models before the engine
runs, so the engine only sees well-formed values:
- Strings are stripped; names and availability values must stay on one line
- Unknown keys are rejected
- Participant availability rides in the body under decimal keys, one per
  term ID: {"name": "alice", "1": "attendance", "3": "absence"}

Invariants:
    - Limits below are shared by every model that carries the field
    - A `fixed` value that is null or blank means "unfix" and is normalized to ""
"""

import re
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

NAME_MAX_LENGTH = 255
TEXT_MAX_LENGTH = 1023
AVAILABILITY_MAX_LENGTH = 32

TERM_KEY = re.compile(r"[0-9]+")


def _single_line(value: str) -> str:
    if "\n" in value or "\r" in value:
        raise ValueError("must be a single line")
    return value


Name = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=NAME_MAX_LENGTH),
    AfterValidator(_single_line),
]
Text = Annotated[str, StringConstraints(strip_whitespace=True, max_length=TEXT_MAX_LENGTH)]
Body = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=TEXT_MAX_LENGTH),
]
Availability = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=AVAILABILITY_MAX_LENGTH),
    AfterValidator(_single_line),
]
TermRef = Annotated[int, Field(ge=1)]


class RequestModel(BaseModel):
    """Base for request bodies: unknown keys are an error."""

    model_config = ConfigDict(extra="forbid")


# --- Events ---


class EventCreateRequest(RequestModel):
    """Request to create an event."""

    title: Name = Field(..., description="Event title")
    description: Text = Field("", description="Free-form description")


class EventPutRequest(RequestModel):
    """Request to edit an event, or to fix/unfix it via `fixed`."""

    title: Name | None = Field(None, description="New title")
    description: Text | None = Field(None, description="New description")
    fixed: Union[TermRef, Literal[""], None] = Field(
        None, description="Term ID to settle on; empty to unfix"
    )

    @field_validator("fixed", mode="before")
    @classmethod
    def blank_means_unfix(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return ""
        if isinstance(value, bool):
            raise ValueError("fixed must be a term ID")
        return value

    def to_data(self) -> dict[str, Any]:
        """Only the keys the caller actually sent."""
        return self.model_dump(exclude_unset=True)


# --- Terms ---


class TermCreateRequest(RequestModel):
    """Request to add a candidate term."""

    term: Name = Field(..., description="Term name, unique within the event")


class TermUpdateRequest(RequestModel):
    """Request to rename a term."""

    term: Name | None = Field(None, description="New term name")


# --- Participants ---


class _ParticipantRequest(RequestModel):
    availability: dict[int, Availability] = Field(
        default_factory=dict, description="Availability per term ID"
    )

    @model_validator(mode="before")
    @classmethod
    def collect_availability(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if "availability" in data:
            raise ValueError("availability is sent as one decimal key per term ID")

        named = {k: v for k, v in data.items() if not TERM_KEY.fullmatch(str(k))}
        named["availability"] = {k: v for k, v in data.items() if TERM_KEY.fullmatch(str(k))}
        return named


class ParticipantCreateRequest(_ParticipantRequest):
    """Request to add a participant."""

    name: Name = Field(..., description="Participant name, unique within the event")


class ParticipantUpdateRequest(_ParticipantRequest):
    """Request to rename a participant and/or change their availability."""

    name: Name | None = Field(None, description="New participant name")


# --- Comments ---


class CommentCreateRequest(RequestModel):
    """Request to add a comment."""

    name: Name = Field(..., description="Author name")
    body: Body = Field(..., description="Comment text, may span lines")


class CommentUpdateRequest(RequestModel):
    """Request to edit a comment."""

    name: Name | None = Field(None, description="New author name")
    body: Body | None = Field(None, description="New comment text")
