"""
Certificate generation orchestrator.

Per completion event:
  ledger PROCESSING -> resolve mapping -> fetch user (email required) -> fetch course
  -> Certificate row (GENERATING) -> render custom fields -> create credential
  -> Certificate SUCCESS + ledger SUCCESS

Any failure marks the certificate (if one was created) and the ledger row FAILED
with the same message, then re-raises for the route layer. No certificate row
exists for failures that happen before the credential call is prepared.

Retries re-run the user/course/credential steps for an existing certificate
against the mapping as it is stored now, overwriting the same row.

Certificate and ledger writes use separate short-lived sessions: the two are
mirrors of each other, not one transaction.
"""
import logging
import uuid
from datetime import date
from functools import lru_cache
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.config import get_settings
from src.database import get_session_factory
from src.integrations.certopus import CertopusClient
from src.integrations.docebo import DoceboLMS
from src.integrations.lms_base import LmsGateway
from src.models.certificate import Certificate, CertificateStatus
from src.models.course_mapping import CourseMapping
from src.schemas.completion_event import CompletionEvent
from src.schemas.credentials import CredentialRequest, CredentialResult
from src.schemas.lms import LmsCourse, LmsUser
from src.services.field_mapping import FieldContext, render_custom_fields
from src.services.lms_domains import ensure_lms_domain
from src.services.mapping_resolver import resolve_course_mapping
from src.services.webhook_ledger import WebhookLedger
from src.utils.errors import NotFoundError, RetryNotAllowedError, UpstreamDataError
from src.utils.logging import mask_email

logger = logging.getLogger(__name__)


def _error_text(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class CertificateOrchestrator:
    """Drives one completion event (or one retry) to a terminal certificate state."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lms: LmsGateway,
        credentials: CertopusClient,
        ledger: Optional[WebhookLedger] = None,
        default_domain: str = "default",
        domain_api_url: str = "",
    ):
        self.session_factory = session_factory
        self.lms = lms
        self.credentials = credentials
        self.ledger = ledger or WebhookLedger(session_factory)
        self.default_domain = default_domain
        self.domain_api_url = domain_api_url

    async def register_domain(self, name: str) -> uuid.UUID:
        return await ensure_lms_domain(self.session_factory, name, self.domain_api_url)

    # -- upstream lookups ------------------------------------------------

    async def _fetch_user(self, user_id: int, domain: str) -> LmsUser:
        user = await self.lms.get_user_details(user_id, domain)
        if user is None:
            raise UpstreamDataError(f"Failed to get user details for user_id: {user_id}")
        if not user.email.strip():
            raise UpstreamDataError(
                f"User email not found in LMS for user_id: {user_id}. "
                "Email is required for certificate generation."
            )
        return user

    async def _fetch_course(self, course_id: int, domain: str) -> LmsCourse:
        course = await self.lms.get_course_details(course_id, domain)
        if course is None:
            raise UpstreamDataError(f"Course details unavailable for course_id: {course_id}")
        return course

    # -- certificate row -------------------------------------------------

    async def _create_certificate(
        self,
        event: CompletionEvent,
        mapping: CourseMapping,
        user: LmsUser,
    ) -> Certificate:
        async with self.session_factory() as session:
            certificate = Certificate(
                lms_user_id=event.user_id,
                lms_course_id=event.course_id,
                recipient_email=user.email.strip(),
                recipient_name=user.full_name,
                completion_date=event.completion_date,
                enrollment_date=event.enrollment_date,
                status=CertificateStatus.GENERATING.value,
                domain_id=mapping.domain_id,
                course_mapping_id=mapping.id,
                webhook_message_id=event.message_id,
            )
            session.add(certificate)
            await session.commit()
        return certificate

    async def _complete_certificate(
        self,
        certificate_id: uuid.UUID,
        result: CredentialResult,
        user: LmsUser,
    ) -> Certificate:
        async with self.session_factory() as session:
            certificate = await session.get(Certificate, certificate_id)
            certificate.credential_id = result.id
            certificate.certificate_url = result.url
            certificate.recipient_email = user.email.strip()
            certificate.recipient_name = user.full_name
            certificate.error_message = None
            certificate.status = CertificateStatus.SUCCESS.value
            await session.commit()
        return certificate

    async def _fail_certificate(self, certificate_id: uuid.UUID, message: str) -> None:
        """Record a failure on the certificate. Never raises over the original error."""
        try:
            async with self.session_factory() as session:
                certificate = await session.get(Certificate, certificate_id)
                if certificate is not None:
                    certificate.status = CertificateStatus.FAILED.value
                    certificate.error_message = message
                    await session.commit()
        except Exception as e:
            logger.error(
                "Could not mark certificate failed: %s", str(e),
                extra={"certificate_id": str(certificate_id)},
            )

    # -- credential call -------------------------------------------------

    async def _issue_credential(
        self,
        mapping: CourseMapping,
        user: LmsUser,
        course: LmsCourse,
        completion_date: date,
        enrollment_date: Optional[date],
    ) -> CredentialResult:
        ctx = FieldContext(
            recipient_name=user.full_name,
            recipient_email=user.email.strip(),
            course_name=course.name,
            course_description=course.description,
            completion_date=completion_date,
            enrollment_date=enrollment_date,
        )
        custom_fields = render_custom_fields(mapping.field_mappings, ctx)
        logger.debug("Rendered %d custom fields for mapping %s", len(custom_fields), mapping.id)

        return await self.credentials.create_credential(
            CredentialRequest(
                organisation_id=mapping.organisation_id,
                event_id=mapping.event_id,
                category_id=mapping.category_id or "",
                recipient_name=ctx.recipient_name,
                recipient_email=ctx.recipient_email,
                custom_fields=custom_fields,
                auto_generate=mapping.auto_generate,
                auto_publish=mapping.auto_publish,
            )
        )

    # -- entry points ----------------------------------------------------

    async def process_event(self, event: CompletionEvent) -> Certificate:
        """Generate a certificate for a relevant completion event."""
        log_extra = {"message_id": event.message_id, "course_id": event.course_id, "domain": event.domain}
        await self.ledger.mark_processing(event.message_id)

        certificate_id: Optional[uuid.UUID] = None
        try:
            async with self.session_factory() as session:
                mapping = await resolve_course_mapping(session, event.domain, event.course_id)

            user = await self._fetch_user(event.user_id, event.domain)
            course = await self._fetch_course(event.course_id, event.domain)

            certificate = await self._create_certificate(event, mapping, user)
            certificate_id = certificate.id

            result = await self._issue_credential(
                mapping, user, course, event.completion_date, event.enrollment_date,
            )
            certificate = await self._complete_certificate(certificate_id, result, user)
        except Exception as e:
            message = _error_text(e)
            logger.error("Certificate generation failed: %s", message, extra=log_extra)
            if certificate_id is not None:
                await self._fail_certificate(certificate_id, message)
            await self.ledger.mark_failed(event.message_id, message)
            raise

        await self.ledger.mark_success(event.message_id)
        logger.info(
            "Certificate %s issued to %s (credential %s)",
            certificate.id, mask_email(certificate.recipient_email), certificate.credential_id,
            extra={**log_extra, "certificate_id": str(certificate.id)},
        )
        return certificate

    async def retry_certificate(self, certificate_id: uuid.UUID) -> Certificate:
        """Re-run generation for a FAILED certificate with its mapping's current settings."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Certificate)
                .where(Certificate.id == certificate_id)
                .options(
                    selectinload(Certificate.course_mapping).selectinload(CourseMapping.domain)
                )
            )
            certificate = result.scalar_one_or_none()
            if certificate is None:
                raise NotFoundError("Certificate not found")
            if certificate.status != CertificateStatus.FAILED.value:
                raise RetryNotAllowedError(
                    f"Certificate is {certificate.status}; only FAILED certificates can be retried"
                )
            mapping = certificate.course_mapping

            certificate.status = CertificateStatus.GENERATING.value
            certificate.error_message = None
            await session.commit()

        domain = mapping.domain.name if mapping.domain is not None else self.default_domain
        message_id = certificate.webhook_message_id
        log_extra = {"certificate_id": str(certificate_id), "course_id": certificate.lms_course_id, "domain": domain}
        logger.info("Retrying certificate generation", extra=log_extra)

        try:
            user = await self._fetch_user(certificate.lms_user_id, domain)
            course = await self._fetch_course(certificate.lms_course_id, domain)
            credential = await self._issue_credential(
                mapping, user, course, certificate.completion_date, certificate.enrollment_date,
            )
            certificate = await self._complete_certificate(certificate_id, credential, user)
        except Exception as e:
            message = _error_text(e)
            logger.error("Certificate retry failed: %s", message, extra=log_extra)
            await self._fail_certificate(certificate_id, message)
            if message_id:
                await self.ledger.mark_failed(message_id, message)
            raise

        if message_id:
            await self.ledger.mark_success(message_id)
        logger.info("Certificate retry succeeded (credential %s)", certificate.credential_id, extra=log_extra)
        return certificate


@lru_cache()
def get_orchestrator() -> CertificateOrchestrator:
    """FastAPI dependency: process-wide orchestrator built from settings."""
    settings = get_settings()
    session_factory = get_session_factory()
    return CertificateOrchestrator(
        session_factory=session_factory,
        lms=DoceboLMS(
            client_id=settings.docebo_client_id,
            client_secret=settings.docebo_client_secret,
            username=settings.docebo_api_username,
            password=settings.docebo_api_password,
            base_url=settings.docebo_api_url,
            timeout=settings.docebo_timeout_seconds,
        ),
        credentials=CertopusClient(
            api_key=settings.certopus_api_key,
            base_url=settings.certopus_api_url,
            timeout=settings.certopus_timeout_seconds,
        ),
        ledger=WebhookLedger(session_factory),
        default_domain=settings.default_lms_domain,
        domain_api_url=settings.docebo_api_url,
    )
