"""
Tests for src/services/event_normalizer.py - webhook body -> CompletionEvent.
"""
from datetime import date

import pytest

from src.schemas.completion_event import COURSE_COMPLETED_EVENT, CompletionEvent
from src.services.event_normalizer import (
    extract_event_kind,
    extract_message_id,
    normalize_webhook,
    synthesize_message_id,
)
from src.utils.errors import ValidationError


# ---------------------------------------------------------------------------
# Recognised shapes
# ---------------------------------------------------------------------------


class TestNestedShape:
    def test_nested_body_normalizes(self, nested_body):
        event = normalize_webhook(nested_body(message_id="msg_42"))

        assert event.event_kind == COURSE_COMPLETED_EVENT
        assert event.message_id == "msg_42"
        assert event.domain == "acme.docebosaas.com"
        assert event.user_id == 12345
        assert event.course_id == 101
        assert event.completion_date == date(2024, 3, 1)
        assert event.enrollment_date is None

    def test_iso_timestamp_with_z_suffix(self, nested_body):
        event = normalize_webhook(nested_body(completion_date="2024-03-01T23:30:00Z"))
        assert event.completion_date == date(2024, 3, 1)

    def test_enrollment_date_is_carried(self, nested_body):
        event = normalize_webhook(nested_body(enrollment_date="2024-01-10"))
        assert event.enrollment_date == date(2024, 1, 10)

    def test_unparseable_enrollment_date_is_dropped(self, nested_body):
        event = normalize_webhook(nested_body(enrollment_date="sometime"))
        assert event.enrollment_date is None


class TestFlatShape:
    def test_flat_body_normalizes(self, flat_body):
        event = normalize_webhook(flat_body(message_id="msg_7"))

        assert event.message_id == "msg_7"
        assert event.user_id == 12345
        assert event.course_id == 101
        assert event.domain == "acme.docebosaas.com"

    def test_top_level_fields_without_payload(self):
        body = {
            "message_id": "msg_top",
            "original_domain": "acme.docebosaas.com",
            "user_id": 42,
            "course_id": 7,
            "completion_date": "2024-01-15",
        }
        event = normalize_webhook(body)

        assert event.user_id == 42
        assert event.course_id == 7
        assert event.completion_date == date(2024, 1, 15)
        assert event.event_kind == COURSE_COMPLETED_EVENT

    def test_missing_event_defaults_to_completion(self, flat_body):
        event = normalize_webhook(flat_body(event=None))
        assert event.event_kind == COURSE_COMPLETED_EVENT

    def test_missing_domain_uses_default_sentinel(self, flat_body):
        event = normalize_webhook(flat_body(domain=None))
        assert event.domain == "default"

    def test_missing_domain_uses_configured_sentinel(self, flat_body):
        event = normalize_webhook(flat_body(domain=None), default_domain="lms.example.com")
        assert event.domain == "lms.example.com"

    def test_missing_message_id_is_synthesized(self, flat_body):
        event = normalize_webhook(flat_body(message_id=None))
        assert event.message_id.startswith("webhook_")
        assert event.message_id[len("webhook_"):].isdigit()


class TestShapeInvariance:
    def test_nested_and_flat_produce_identical_event(self, nested_body, flat_body):
        """Same logical event in either envelope normalizes to the same CompletionEvent."""
        from_nested = normalize_webhook(nested_body(message_id="msg_same", status="completed"))
        from_flat = normalize_webhook(flat_body(message_id="msg_same", status="completed"))

        assert from_nested == from_flat

    def test_flat_top_level_matches_nested(self, nested_body):
        from_nested = normalize_webhook(nested_body(message_id="msg_same"))
        from_flat = normalize_webhook({
            "event": COURSE_COMPLETED_EVENT,
            "message_id": "msg_same",
            "original_domain": "acme.docebosaas.com",
            "user_id": 12345,
            "course_id": 101,
            "completion_date": "2024-03-01 10:00:00",
        })

        assert from_nested == from_flat


# ---------------------------------------------------------------------------
# Non-completion events
# ---------------------------------------------------------------------------


class TestIgnoredEvents:
    def test_other_kind_without_payload(self):
        event = normalize_webhook({"message_id": "msg_user", "event": "user.created"})

        assert event.event_kind == "user.created"
        assert event.message_id == "msg_user"
        assert event.domain == "default"
        assert event.user_id is None
        assert event.course_id is None
        assert event.completion_date is None
        assert not event.is_course_completion

    def test_other_kind_with_partial_payload(self):
        event = normalize_webhook({
            "message_id": "msg_partial",
            "event": "user.created",
            "original_domain": "acme.docebosaas.com",
            "payload": {"user_id": 42, "course_id": "not-a-number"},
        })

        assert event.user_id == 42
        assert event.course_id is None
        assert event.domain == "acme.docebosaas.com"
        assert not event.is_course_completion

    def test_nested_other_kind_without_payload_or_id(self):
        event = normalize_webhook({
            "event": {"body": {"event": "course.enrollment.created", "original_domain": "acme.docebosaas.com"}},
        })

        assert event.event_kind == "course.enrollment.created"
        assert event.message_id.startswith("webhook_")
        assert event.domain == "acme.docebosaas.com"
        assert not event.is_course_completion

    def test_incomplete_completion_without_date(self, nested_body):
        body = nested_body(status="in_progress")
        del body["event"]["body"]["payload"]["completion_date"]

        event = normalize_webhook(body)

        assert event.status == "in_progress"
        assert event.completion_date is None
        assert not event.is_course_completion


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


class TestRejections:
    @pytest.mark.parametrize("body", [[], "text", 42, None])
    def test_non_object_body_rejected(self, body):
        with pytest.raises(ValidationError) as exc_info:
            normalize_webhook(body)
        assert exc_info.value.message_id is None

    def test_empty_object_rejected(self):
        with pytest.raises(ValidationError):
            normalize_webhook({})

    def test_nested_missing_user_id_keeps_message_id(self, nested_body):
        body = nested_body(message_id="msg_bad")
        del body["event"]["body"]["payload"]["user_id"]

        with pytest.raises(ValidationError) as exc_info:
            normalize_webhook(body)
        assert exc_info.value.message_id == "msg_bad"
        assert "user_id" in str(exc_info.value)

    def test_string_ids_rejected(self, flat_body):
        with pytest.raises(ValidationError) as exc_info:
            normalize_webhook(flat_body(user_id="42"))
        assert exc_info.value.message_id == "msg_1"

    def test_bad_completion_date_rejected(self, nested_body):
        with pytest.raises(ValidationError):
            normalize_webhook(nested_body(completion_date="not a date"))

    def test_nested_without_message_id_rejected(self, nested_body):
        body = nested_body()
        del body["event"]["body"]["message_id"]

        with pytest.raises(ValidationError) as exc_info:
            normalize_webhook(body)
        assert exc_info.value.message_id is None


# ---------------------------------------------------------------------------
# Relevance and helpers
# ---------------------------------------------------------------------------


class TestRelevance:
    def _event(self, **overrides) -> CompletionEvent:
        values = dict(
            event_kind=COURSE_COMPLETED_EVENT,
            user_id=1,
            course_id=2,
            completion_date=date(2024, 3, 1),
            message_id="m",
            domain="d",
        )
        values.update(overrides)
        return CompletionEvent(**values)

    def test_completed_event_is_relevant(self):
        assert self._event().is_course_completion
        assert self._event(status="completed").is_course_completion

    def test_other_kind_is_ignored(self):
        assert not self._event(event_kind="course.enrollment.created").is_course_completion

    def test_incomplete_status_is_ignored(self):
        assert not self._event(status="in_progress").is_course_completion


class TestHelpers:
    def test_synthesized_ids_are_prefixed(self):
        assert synthesize_message_id().startswith("webhook_")

    def test_extract_message_id_from_either_shape(self, nested_body, flat_body):
        assert extract_message_id(nested_body(message_id="a")) == "a"
        assert extract_message_id(flat_body(message_id="b")) == "b"
        assert extract_message_id({"foo": 1}) is None
        assert extract_message_id("nope") is None

    def test_extract_event_kind(self, nested_body, flat_body):
        assert extract_event_kind(nested_body(event="x.y")) == "x.y"
        assert extract_event_kind(flat_body(event="z")) == "z"
        assert extract_event_kind({}) == "unknown"
