"""
Webhook ledger - every incoming LMS webhook is recorded before processing.
Keyed by the sender's message_id: redelivery overwrites the row, never duplicates it.
Rows are never deleted (audit trail and replay source).
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from src.database import Base


class WebhookStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    message_id = Column(String(255), nullable=False, unique=True, index=True)
    event_kind = Column(String(100), nullable=False)
    domain_id = Column(UUID(as_uuid=True), ForeignKey("lms_domains.id"), nullable=True, index=True)
    raw_payload = Column(JSONB, nullable=False)
    status = Column(
        String(20), nullable=False, default=WebhookStatus.RECEIVED.value,
        server_default=WebhookStatus.RECEIVED.value, index=True,
    )
    error_message = Column(Text, nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
