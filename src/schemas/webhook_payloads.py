"""
Webhook payload schemas - the raw shapes the LMS posts to us.

Two envelopes are recognised:
- nested: {"event": {"body": {"message_id", "original_domain", "event", "payload": {...}}}}
- flat:   {"message_id", "original_domain", "event": "<kind>", "payload": {...}}
          (payload fields may also sit at the top level)

Both are normalized into a CompletionEvent before anything else looks at them.
"""
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, StrictInt, field_validator, model_validator

from src.utils.dates import parse_lms_date

_PAYLOAD_FIELDS = ("fired_at", "user_id", "course_id", "completion_date", "status", "enrollment_date", "level")


class CompletionPayload(BaseModel):
    """Inner payload of a course.enrollment.completed event."""
    user_id: StrictInt
    course_id: StrictInt
    completion_date: date
    status: Optional[str] = None
    enrollment_date: Optional[date] = None
    fired_at: Optional[str] = None
    subscribed_by_id: Optional[int] = None
    level: Optional[str] = None

    @field_validator("completion_date", mode="before")
    @classmethod
    def _parse_completion_date(cls, value: Any) -> date:
        parsed = parse_lms_date(value)
        if parsed is None:
            raise ValueError("completion_date must be an ISO date or datetime string")
        return parsed

    @field_validator("enrollment_date", mode="before")
    @classmethod
    def _parse_enrollment_date(cls, value: Any) -> Optional[date]:
        # Optional field: a bad value is dropped rather than rejecting the event
        return parse_lms_date(value)


class NestedEventBody(BaseModel):
    message_id: str
    original_domain: str
    event: str
    payload: CompletionPayload
    webhook_id: Optional[int] = None
    fired_by_batch_action: Optional[bool] = None


class NestedEnvelope(BaseModel):
    body: NestedEventBody


class NestedWebhookPayload(BaseModel):
    """Envelope with the event wrapped in event.body."""
    event: NestedEnvelope
    context: Optional[dict] = None


class FlatWebhookPayload(BaseModel):
    """Envelope with event fields at the top level; `event` is a bare string if present."""
    payload: CompletionPayload
    event: Optional[str] = None
    message_id: Optional[str] = None
    original_domain: Optional[str] = None
    webhook_id: Optional[int] = None
    context: Optional[dict] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_top_level_payload(cls, data: Any) -> Any:
        """Older senders put user_id/course_id/completion_date directly on the document."""
        if isinstance(data, dict) and data.get("payload") is None:
            lifted = {key: data[key] for key in _PAYLOAD_FIELDS if key in data}
            if lifted:
                data = {**data, "payload": lifted}
        return data
