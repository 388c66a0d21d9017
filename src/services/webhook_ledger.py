"""
Webhook ledger - idempotent log of every LMS webhook, keyed by message_id.

Each write runs in its own short-lived session and commits immediately, so the
ledger never shares a transaction with certificate writes. Concurrent deliveries
of the same message_id rely on the database's atomic INSERT ... ON CONFLICT;
the last writer wins.

Status updates after the initial receipt are fire-and-forget: a failed ledger
write is logged and swallowed so it can never replace the pipeline error (or
success) being reported to the caller.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database import dialect_insert
from src.models.webhook_event import WebhookEvent, WebhookStatus
from src.utils.logging import get_correlation_id

logger = logging.getLogger(__name__)


class WebhookLedger:
    """Insert-or-update log of inbound webhook events."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _upsert(
        self,
        message_id: str,
        event_kind: str,
        raw_payload: dict,
        status: WebhookStatus,
        domain_id: Optional[uuid.UUID] = None,
        error_message: Optional[str] = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        processed_at = now if status == WebhookStatus.FAILED else None
        correlation_id = get_correlation_id()
        async with self._session_factory() as session:
            stmt = dialect_insert(session, WebhookEvent).values(
                id=uuid.uuid4(),
                message_id=message_id,
                event_kind=event_kind,
                raw_payload=raw_payload,
                domain_id=domain_id,
                status=status.value,
                error_message=error_message,
                correlation_id=correlation_id,
                processed_at=processed_at,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[WebhookEvent.message_id],
                set_={
                    "status": status.value,
                    "raw_payload": raw_payload,
                    "error_message": error_message,
                    "correlation_id": correlation_id,
                    "processed_at": processed_at,
                    "updated_at": now,
                },
            )
            await session.execute(stmt)
            await session.commit()

    async def upsert_received(
        self,
        message_id: str,
        event_kind: str,
        raw_payload: dict,
        domain_id: Optional[uuid.UUID] = None,
    ) -> None:
        """
        Record receipt of a webhook. A redelivery of a known message_id
        overwrites the existing row's status and payload.
        Failures propagate: without a ledger row the delivery is not accepted.
        """
        await self._upsert(message_id, event_kind, raw_payload, WebhookStatus.RECEIVED, domain_id)
        logger.info(
            "Webhook recorded: %s (%s)", message_id, event_kind,
            extra={"message_id": message_id},
        )

    async def record_rejected(
        self,
        message_id: str,
        event_kind: str,
        raw_payload: dict,
        error_message: str,
    ) -> None:
        """Log a delivery that failed validation but still carried a message_id."""
        try:
            await self._upsert(
                message_id, event_kind, raw_payload, WebhookStatus.FAILED,
                error_message=error_message,
            )
        except Exception as e:
            logger.error(
                "Failed to record rejected webhook %s: %s", message_id, str(e),
                extra={"message_id": message_id},
            )

    async def _set_status(
        self,
        message_id: str,
        status: WebhookStatus,
        error_message: Optional[str] = None,
    ) -> None:
        values = {"status": status.value, "error_message": error_message}
        if status in (WebhookStatus.SUCCESS, WebhookStatus.FAILED):
            values["processed_at"] = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.message_id == message_id)
                    .values(**values)
                )
                await session.commit()
        except Exception as e:
            logger.error(
                "Ledger update to %s failed for %s: %s", status.value, message_id, str(e),
                extra={"message_id": message_id},
            )

    async def mark_processing(self, message_id: str) -> None:
        await self._set_status(message_id, WebhookStatus.PROCESSING)

    async def mark_success(self, message_id: str) -> None:
        await self._set_status(message_id, WebhookStatus.SUCCESS)

    async def mark_failed(self, message_id: str, error_message: str) -> None:
        await self._set_status(message_id, WebhookStatus.FAILED, error_message)
