"""
API response schemas for the webhook, retry and read-only listing endpoints.
Field aliases keep the camelCase keys the LMS integration console expects.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookAckResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: Optional[str] = None


class RetryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    certificate_url: Optional[str] = Field(None, alias="certificateUrl")


class WebhookEventSummary(BaseModel):
    id: str
    message_id: str
    event_kind: str
    domain: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    raw_payload: dict[str, Any] = {}
    correlation_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CertificateSummary(BaseModel):
    id: str
    recipient_email: str
    recipient_name: str
    lms_user_id: int
    lms_course_id: int
    course_title: str
    domain: Optional[str] = None
    status: str
    certificate_url: Optional[str] = None
    credential_id: Optional[str] = None
    error_message: Optional[str] = None
    completion_date: str
    webhook_message_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DashboardStats(BaseModel):
    active_domains: int = 0
    active_mappings: int = 0
    total_certificates: int = 0
    webhooks_last_24h: int = 0
    certificates_by_status: dict[str, int] = {}
