"""
Event normalizer - turns a raw LMS webhook body into a CompletionEvent.

The body is classified once (nested envelope vs flat document) and validated
against that shape; anything that fits neither is rejected. Field probing does
not leak past this module.
"""
import logging
import time
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from src.schemas.completion_event import COURSE_COMPLETED_EVENT, CompletionEvent
from src.schemas.webhook_payloads import FlatWebhookPayload, NestedWebhookPayload
from src.utils.dates import parse_lms_date
from src.utils.errors import ValidationError

logger = logging.getLogger(__name__)


def synthesize_message_id() -> str:
    """Fallback id for senders that omit message_id. Such deliveries are never deduplicated."""
    return f"webhook_{int(time.time() * 1000)}"


def extract_message_id(body: Any) -> Optional[str]:
    """Best-effort message id lookup on a body that may not have validated."""
    if not isinstance(body, dict):
        return None
    event = body.get("event")
    if isinstance(event, dict):
        inner = event.get("body")
        if isinstance(inner, dict) and isinstance(inner.get("message_id"), str):
            return inner["message_id"]
    message_id = body.get("message_id")
    return message_id if isinstance(message_id, str) and message_id else None


def _declared_event_kind(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        event = body.get("event")
        if isinstance(event, str):
            return event
        if isinstance(event, dict) and isinstance(event.get("body"), dict):
            kind = event["body"].get("event")
            if isinstance(kind, str):
                return kind
    return None


def extract_event_kind(body: Any) -> str:
    return _declared_event_kind(body) or "unknown"


def _raw_fields(body: dict) -> tuple[dict, dict]:
    """(envelope, payload) of either shape, read without validation."""
    event = body.get("event")
    if isinstance(event, dict):
        inner = event.get("body")
        inner = inner if isinstance(inner, dict) else {}
    else:
        inner = body
    payload = inner.get("payload")
    if not isinstance(payload, dict):
        # flat senders may put payload fields on the document itself
        payload = body if inner is body else {}
    return inner, payload


def _as_int(value: Any) -> Optional[int]:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _ignored_event(body: dict, kind: str, default_domain: str) -> CompletionEvent:
    """
    Canonical form of an event that will be acknowledged but not processed.
    Completion fields are optional here; whatever is readable is kept for the log.
    """
    inner, payload = _raw_fields(body)
    domain = inner.get("original_domain")
    status = payload.get("status")
    return CompletionEvent(
        event_kind=kind,
        user_id=_as_int(payload.get("user_id")),
        course_id=_as_int(payload.get("course_id")),
        completion_date=parse_lms_date(payload.get("completion_date")),
        message_id=extract_message_id(body) or synthesize_message_id(),
        domain=domain if isinstance(domain, str) and domain else default_domain,
        status=status if isinstance(status, str) else None,
        enrollment_date=parse_lms_date(payload.get("enrollment_date")),
    )


def _ignored_kind(body: dict) -> Optional[str]:
    """The event kind when the body declares a non-completion, else None."""
    kind = _declared_event_kind(body)
    if kind is not None and kind != COURSE_COMPLETED_EVENT:
        return kind
    if kind == COURSE_COMPLETED_EVENT:
        status = _raw_fields(body)[1].get("status")
        if isinstance(status, str) and status and status != "completed":
            return kind
    return None


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def normalize_webhook(body: Any, default_domain: str = "default") -> CompletionEvent:
    """
    Normalize a decoded webhook body.

    Events that are not completed course enrollments are returned without
    validating completion fields, since they are only acknowledged.

    Raises ValidationError when the body matches neither recognised shape; the
    error carries the message id if one could still be read off the body.
    """
    if not isinstance(body, dict):
        raise ValidationError("Webhook body must be a JSON object")

    ignored_kind = _ignored_kind(body)
    if ignored_kind is not None:
        return _ignored_event(body, ignored_kind, default_domain)

    message_id = extract_message_id(body)

    if isinstance(body.get("event"), dict):
        try:
            nested = NestedWebhookPayload.model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid nested webhook payload: {_describe(e)}", message_id=message_id
            ) from e
        inner = nested.event.body
        payload = inner.payload
        return CompletionEvent(
            event_kind=inner.event,
            user_id=payload.user_id,
            course_id=payload.course_id,
            completion_date=payload.completion_date,
            message_id=inner.message_id,
            domain=inner.original_domain,
            status=payload.status,
            enrollment_date=payload.enrollment_date,
        )

    try:
        flat = FlatWebhookPayload.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid webhook payload: {_describe(e)}", message_id=message_id
        ) from e

    payload = flat.payload
    if not flat.message_id:
        logger.warning("Webhook without message_id; synthesizing one (no deduplication possible)")
    return CompletionEvent(
        event_kind=flat.event or COURSE_COMPLETED_EVENT,
        user_id=payload.user_id,
        course_id=payload.course_id,
        completion_date=payload.completion_date,
        message_id=flat.message_id or synthesize_message_id(),
        domain=flat.original_domain or default_domain,
        status=payload.status,
        enrollment_date=payload.enrollment_date,
    )
