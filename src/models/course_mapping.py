"""
Course mapping - links one LMS course in one domain to a credential-service
organisation/event/category and describes how certificate fields are filled.
Managed by the admin side; read-only to the pipeline.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base


class CourseMapping(Base):
    __tablename__ = "course_mappings"
    __table_args__ = (
        UniqueConstraint("domain_id", "lms_course_id", name="uq_course_mappings_domain_course"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    domain_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lms_domains.id"), nullable=False, index=True
    )
    lms_course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    course_title: Mapped[Optional[str]] = mapped_column(String(255))

    # Credential-service target
    organisation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    category_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # {"{Name}": "user_name", "{Date}": "completion_date", ...}
    field_mappings: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    auto_generate: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_publish: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    domain = relationship("LmsDomain", lazy="raise")
