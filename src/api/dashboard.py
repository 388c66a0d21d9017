"""
Dashboard API - aggregate counts for the operator overview.
"""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.models.certificate import Certificate, CertificateStatus
from src.models.course_mapping import CourseMapping
from src.models.lms_domain import LmsDomain
from src.models.webhook_event import WebhookEvent
from src.schemas.api_responses import DashboardStats

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(db: AsyncSession = Depends(get_db)):
    since = datetime.now(timezone.utc) - timedelta(hours=24)

    active_domains = await db.scalar(
        select(func.count(LmsDomain.id)).where(LmsDomain.active.is_(True))
    )
    active_mappings = await db.scalar(
        select(func.count(CourseMapping.id)).where(CourseMapping.active.is_(True))
    )
    total_certificates = await db.scalar(select(func.count(Certificate.id)))
    webhooks_last_24h = await db.scalar(
        select(func.count(WebhookEvent.id)).where(WebhookEvent.created_at >= since)
    )

    by_status = {s.value: 0 for s in CertificateStatus}
    result = await db.execute(
        select(Certificate.status, func.count(Certificate.id)).group_by(Certificate.status)
    )
    for status, count in result.all():
        by_status[status] = count

    return DashboardStats(
        active_domains=active_domains or 0,
        active_mappings=active_mappings or 0,
        total_certificates=total_certificates or 0,
        webhooks_last_24h=webhooks_last_24h or 0,
        certificates_by_status=by_status,
    )
