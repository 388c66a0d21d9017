"""Initial schema - LMS domains, webhook ledger, course mappings, certificates.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # LMS domains
    op.create_table(
        "lms_domains",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("api_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Webhook ledger
    op.create_table(
        "webhook_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("message_id", sa.String(255), nullable=False),
        sa.Column("event_kind", sa.String(100), nullable=False),
        sa.Column("domain_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lms_domains.id")),
        sa.Column("raw_payload", postgresql.JSONB, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="RECEIVED"),
        sa.Column("error_message", sa.Text),
        sa.Column("correlation_id", sa.String(64)),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_webhook_events_message_id", "webhook_events", ["message_id"], unique=True)
    op.create_index("ix_webhook_events_domain_id", "webhook_events", ["domain_id"])
    op.create_index("ix_webhook_events_status", "webhook_events", ["status"])
    op.create_index("ix_webhook_events_correlation_id", "webhook_events", ["correlation_id"])

    # Course mappings
    op.create_table(
        "course_mappings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("domain_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lms_domains.id"), nullable=False),
        sa.Column("lms_course_id", sa.Integer, nullable=False),
        sa.Column("course_title", sa.String(255)),
        sa.Column("organisation_id", sa.String(100), nullable=False),
        sa.Column("event_id", sa.String(100), nullable=False),
        sa.Column("category_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("field_mappings", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("auto_generate", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("auto_publish", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("domain_id", "lms_course_id", name="uq_course_mappings_domain_course"),
    )
    op.create_index("ix_course_mappings_domain_id", "course_mappings", ["domain_id"])

    # Certificates
    op.create_table(
        "certificates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lms_user_id", sa.Integer, nullable=False),
        sa.Column("lms_course_id", sa.Integer, nullable=False),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("recipient_name", sa.String(255), nullable=False),
        sa.Column("completion_date", sa.Date, nullable=False),
        sa.Column("enrollment_date", sa.Date),
        sa.Column("credential_id", sa.String(255)),
        sa.Column("certificate_url", sa.String(1000)),
        sa.Column("error_message", sa.Text),
        sa.Column("status", sa.String(20), nullable=False, server_default="GENERATING"),
        sa.Column("domain_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("lms_domains.id"), nullable=False),
        sa.Column(
            "course_mapping_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("course_mappings.id"), nullable=False,
        ),
        sa.Column("webhook_message_id", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_certificates_lms_user_id", "certificates", ["lms_user_id"])
    op.create_index("ix_certificates_lms_course_id", "certificates", ["lms_course_id"])
    op.create_index("ix_certificates_status", "certificates", ["status"])
    op.create_index("ix_certificates_course_mapping_id", "certificates", ["course_mapping_id"])
    op.create_index("ix_certificates_webhook_message_id", "certificates", ["webhook_message_id"])


def downgrade() -> None:
    op.drop_table("certificates")
    op.drop_table("course_mappings")
    op.drop_table("webhook_events")
    op.drop_table("lms_domains")
