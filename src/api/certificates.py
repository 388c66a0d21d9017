"""
Certificate endpoints - listing and operator-triggered regeneration.
"""
import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.database import get_db
from src.models.certificate import Certificate
from src.models.course_mapping import CourseMapping
from src.schemas.api_responses import CertificateSummary, ErrorResponse, RetryResponse
from src.services.certificate_generation import CertificateOrchestrator, get_orchestrator
from src.utils.errors import NotFoundError, RetryNotAllowedError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/certificates", tags=["certificates"])


@router.get("", response_model=list[CertificateSummary])
async def list_certificates(db: AsyncSession = Depends(get_db)):
    """All certificates, newest first."""
    result = await db.execute(
        select(Certificate)
        .options(selectinload(Certificate.course_mapping).selectinload(CourseMapping.domain))
        .order_by(Certificate.created_at.desc())
    )
    summaries = []
    for cert in result.scalars().all():
        mapping = cert.course_mapping
        summaries.append(
            CertificateSummary(
                id=str(cert.id),
                recipient_email=cert.recipient_email,
                recipient_name=cert.recipient_name,
                lms_user_id=cert.lms_user_id,
                lms_course_id=cert.lms_course_id,
                course_title=(mapping.course_title if mapping else None) or f"Course {cert.lms_course_id}",
                domain=mapping.domain.name if mapping and mapping.domain else None,
                status=cert.status,
                certificate_url=cert.certificate_url,
                credential_id=cert.credential_id,
                error_message=cert.error_message,
                completion_date=cert.completion_date.isoformat(),
                webhook_message_id=cert.webhook_message_id,
                created_at=cert.created_at,
                updated_at=cert.updated_at,
            )
        )
    return summaries


@router.post("/{certificate_id}/retry", response_model=RetryResponse, response_model_by_alias=True)
async def retry_certificate(
    certificate_id: str,
    orchestrator: CertificateOrchestrator = Depends(get_orchestrator),
):
    """Regenerate a certificate using its mapping's current configuration."""
    try:
        cert_uuid = uuid.UUID(certificate_id)
    except ValueError:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="Certificate not found").model_dump(exclude_none=True),
        )

    try:
        certificate = await orchestrator.retry_certificate(cert_uuid)
    except NotFoundError:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="Certificate not found").model_dump(exclude_none=True),
        )
    except RetryNotAllowedError as e:
        logger.warning("Certificate retry refused: %s", str(e), extra={"certificate_id": certificate_id})
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(error="Certificate cannot be retried", message=str(e)).model_dump(),
        )
    except Exception as e:
        logger.error(
            "Certificate retry error: %s", str(e), exc_info=True,
            extra={"certificate_id": certificate_id},
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Failed to regenerate certificate", message=str(e)).model_dump(),
        )

    return RetryResponse(certificate_url=certificate.certificate_url)
