"""
Unit tests for HTTP request models.

Tests cover:
- Stripping, length and single-line rules
- Unknown keys
- `fixed` normalization (blank means unfix)
- Participant availability carried under decimal keys
"""

import pytest
from pydantic import ValidationError

from planner.event_server.api.schemas import (
    NAME_MAX_LENGTH,
    TEXT_MAX_LENGTH,
    CommentCreateRequest,
    CommentUpdateRequest,
    EventCreateRequest,
    EventPutRequest,
    ParticipantCreateRequest,
    ParticipantUpdateRequest,
    TermCreateRequest,
    TermUpdateRequest,
)


class TestEventRequests:
    """Tests for EventCreateRequest and EventPutRequest."""

    def test_create_strips_strings(self):
        body = EventCreateRequest.model_validate({"title": " Dinner ", "description": "\tFri?\n"})
        assert body.title == "Dinner"
        assert body.description == "Fri?"

    def test_create_strips_ideographic_space(self):
        body = EventCreateRequest.model_validate({"title": "　Dinner　"})
        assert body.title == "Dinner"

    def test_create_description_defaults_to_empty(self):
        assert EventCreateRequest.model_validate({"title": "x"}).description == ""

    @pytest.mark.parametrize("title", ["", "   ", "a\nb", 3, None])
    def test_create_bad_title(self, title):
        with pytest.raises(ValidationError):
            EventCreateRequest.model_validate({"title": title})

    def test_create_requires_title(self):
        with pytest.raises(ValidationError):
            EventCreateRequest.model_validate({"description": "x"})

    def test_create_unknown_key(self):
        with pytest.raises(ValidationError):
            EventCreateRequest.model_validate({"title": "x", "owner": "me"})

    def test_title_length_limit(self):
        EventCreateRequest.model_validate({"title": "x" * NAME_MAX_LENGTH})
        with pytest.raises(ValidationError):
            EventCreateRequest.model_validate({"title": "x" * (NAME_MAX_LENGTH + 1)})

    def test_description_may_span_lines(self):
        body = EventPutRequest.model_validate({"description": "line 1\nline 2"})
        assert body.to_data() == {"description": "line 1\nline 2"}

    def test_description_length_limit(self):
        with pytest.raises(ValidationError):
            EventPutRequest.model_validate({"description": "x" * (TEXT_MAX_LENGTH + 1)})

    def test_put_keeps_only_sent_keys(self):
        assert EventPutRequest.model_validate({"title": "x"}).to_data() == {"title": "x"}
        assert EventPutRequest.model_validate({}).to_data() == {}

    @pytest.mark.parametrize("value,expected", [(2, 2), ("2", 2), ("", ""), ("  ", ""), (None, "")])
    def test_put_fixed(self, value, expected):
        assert EventPutRequest.model_validate({"fixed": value}).to_data() == {"fixed": expected}

    @pytest.mark.parametrize("value", [0, "0", "-1", "x", 1.5, True])
    def test_put_bad_fixed(self, value):
        with pytest.raises(ValidationError):
            EventPutRequest.model_validate({"fixed": value})


class TestTermRequests:
    """Tests for term request models."""

    def test_create(self):
        assert TermCreateRequest.model_validate({"term": " Mon "}).term == "Mon"

    def test_create_requires_term(self):
        with pytest.raises(ValidationError):
            TermCreateRequest.model_validate({})

    def test_update_may_be_empty(self):
        assert TermUpdateRequest.model_validate({}).term is None


class TestParticipantRequests:
    """Tests for participant request models."""

    def test_availability_from_decimal_keys(self):
        body = ParticipantCreateRequest.model_validate(
            {"name": "alice", "1": "attendance", "3": " absence "}
        )

        assert body.name == "alice"
        assert body.availability == {1: "attendance", 3: "absence"}

    def test_no_availability(self):
        body = ParticipantCreateRequest.model_validate({"name": "alice"})
        assert body.availability == {}

    def test_update_may_be_empty(self):
        body = ParticipantUpdateRequest.model_validate({})
        assert body.name is None
        assert body.availability == {}

    @pytest.mark.parametrize("value", [" ", "a\nb", "x" * 33, 1])
    def test_bad_availability_value(self, value):
        with pytest.raises(ValidationError):
            ParticipantCreateRequest.model_validate({"name": "alice", "1": value})

    def test_non_decimal_key(self):
        with pytest.raises(ValidationError):
            ParticipantCreateRequest.model_validate({"name": "alice", "1a": "attendance"})

    def test_availability_key_is_not_accepted(self):
        with pytest.raises(ValidationError):
            ParticipantUpdateRequest.model_validate({"availability": {"1": "attendance"}})


class TestCommentRequests:
    """Tests for comment request models."""

    def test_body_may_span_lines(self):
        body = CommentCreateRequest.model_validate({"name": "bob", "body": "see you\nthere"})
        assert body.body == "see you\nthere"

    def test_body_required(self):
        with pytest.raises(ValidationError):
            CommentCreateRequest.model_validate({"name": "bob"})

    def test_blank_body(self):
        with pytest.raises(ValidationError):
            CommentCreateRequest.model_validate({"name": "bob", "body": "  "})

    def test_update_partial(self):
        body = CommentUpdateRequest.model_validate({"body": "edited"})
        assert (body.name, body.body) == (None, "edited")
