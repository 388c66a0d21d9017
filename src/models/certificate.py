"""
Certificate - one row per completion event that resolved to a mapping.
Created in GENERATING, finished as SUCCESS or FAILED; a retry overwrites the same row.
"""
import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base


class CertificateStatus(str, enum.Enum):
    PENDING = "PENDING"  # reserved for manual/deferred flows
    GENERATING = "GENERATING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Certificate(Base):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lms_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    lms_course_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    completion_date: Mapped[date] = mapped_column(Date, nullable=False)
    enrollment_date: Mapped[Optional[date]] = mapped_column(Date)

    credential_id: Mapped[Optional[str]] = mapped_column(String(255))
    certificate_url: Mapped[Optional[str]] = mapped_column(String(1000))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CertificateStatus.GENERATING.value, index=True
    )

    domain_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lms_domains.id"), nullable=False
    )
    course_mapping_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("course_mappings.id"), nullable=False, index=True
    )
    # Soft back-reference to the ledger row, not a foreign key
    webhook_message_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    course_mapping = relationship("CourseMapping", lazy="raise")
