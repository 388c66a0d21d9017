"""
Webhook endpoints - receive course-completion events from the LMS.

Flow per delivery:
1. Decode JSON, normalize to a CompletionEvent (400 on either failure)
2. Register the source domain and record the delivery in the ledger
3. Relevance filter (non-completions are acknowledged and marked SUCCESS)
4. Certificate generation (500 with the pipeline error on failure)
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.models.lms_domain import LmsDomain
from src.models.webhook_event import WebhookEvent
from src.schemas.api_responses import ErrorResponse, WebhookAckResponse, WebhookEventSummary
from src.services.certificate_generation import CertificateOrchestrator, get_orchestrator
from src.services.event_normalizer import extract_event_kind, normalize_webhook
from src.utils.errors import ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["webhooks"])

WEBHOOK_LIST_LIMIT = 100


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(exclude_none=True),
    )


@router.post("/webhook", response_model=WebhookAckResponse)
async def lms_webhook(
    request: Request,
    orchestrator: CertificateOrchestrator = Depends(get_orchestrator),
):
    """LMS course-completion webhook (nested envelope or flat document)."""
    raw = await request.body()
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Webhook rejected: body is not valid JSON")
        return _error(400, "Invalid JSON body")

    try:
        event = normalize_webhook(body, default_domain=orchestrator.default_domain)
    except ValidationError as e:
        logger.warning("Webhook rejected: %s", str(e), extra={"message_id": e.message_id})
        if e.message_id:
            await orchestrator.ledger.record_rejected(
                e.message_id, extract_event_kind(body), body, str(e),
            )
        return _error(400, "Invalid webhook payload", str(e))

    log_extra = {"message_id": event.message_id, "domain": event.domain}
    try:
        domain_id = await orchestrator.register_domain(event.domain)
        await orchestrator.ledger.upsert_received(
            event.message_id, event.event_kind, body, domain_id=domain_id,
        )
    except Exception as e:
        logger.error("Failed to record webhook: %s", str(e), exc_info=True, extra=log_extra)
        return _error(500, "Failed to process webhook", str(e))

    if not event.is_course_completion:
        logger.info(
            "Ignoring %s event (status=%s)", event.event_kind, event.status, extra=log_extra,
        )
        await orchestrator.ledger.mark_success(event.message_id)
        return WebhookAckResponse(
            message="Webhook received but not processed (not a course completion)"
        )

    try:
        await orchestrator.process_event(event)
    except Exception as e:
        logger.error("Webhook processing error: %s", str(e), exc_info=True, extra=log_extra)
        return _error(500, "Failed to process webhook", str(e))

    return WebhookAckResponse(message="Certificate generation initiated successfully")


@router.get("/webhooks", response_model=list[WebhookEventSummary])
async def list_webhook_events(db: AsyncSession = Depends(get_db)):
    """Most recent ledger rows, newest first."""
    result = await db.execute(
        select(WebhookEvent, LmsDomain.name)
        .outerjoin(LmsDomain, WebhookEvent.domain_id == LmsDomain.id)
        .order_by(WebhookEvent.created_at.desc())
        .limit(WEBHOOK_LIST_LIMIT)
    )
    return [
        WebhookEventSummary(
            id=str(row.id),
            message_id=row.message_id,
            event_kind=row.event_kind,
            domain=domain_name,
            status=row.status,
            error_message=row.error_message,
            raw_payload=row.raw_payload or {},
            correlation_id=row.correlation_id,
            processed_at=row.processed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
        for row, domain_name in result.all()
    ]
