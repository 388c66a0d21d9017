"""
Database models - import all models here so Alembic and create_all can discover them.
"""
from src.models.lms_domain import LmsDomain
from src.models.webhook_event import WebhookEvent, WebhookStatus
from src.models.course_mapping import CourseMapping
from src.models.certificate import Certificate, CertificateStatus

__all__ = [
    "LmsDomain",
    "WebhookEvent",
    "WebhookStatus",
    "CourseMapping",
    "Certificate",
    "CertificateStatus",
]
