"""
Tests for src/api/certificates.py - certificate listing and retry endpoint.
"""
import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from src.api.certificates import list_certificates, retry_certificate
from src.models.certificate import Certificate
from src.models.course_mapping import CourseMapping
from src.schemas.api_responses import RetryResponse
from src.services.event_normalizer import normalize_webhook
from src.utils.errors import CredentialBadRequestError, NotFoundError, RetryNotAllowedError


async def _generate(orchestrator, body: dict):
    event = normalize_webhook(body)
    await orchestrator.ledger.upsert_received(event.message_id, event.event_kind, body)
    return await orchestrator.process_event(event)


class TestListCertificates:
    async def test_lists_with_course_title_and_domain(
        self, orchestrator, db, course_mapping, nested_body,
    ):
        await _generate(orchestrator, nested_body(message_id="msg_1"))

        items = await list_certificates(db=db)

        assert len(items) == 1
        item = items[0]
        assert item.course_title == "Safety Basics"
        assert item.domain == "acme.docebosaas.com"
        assert item.status == "SUCCESS"
        assert item.completion_date == "2024-03-01"
        assert item.webhook_message_id == "msg_1"

    async def test_course_title_falls_back_to_id(
        self, orchestrator, db, session_factory, course_mapping, nested_body,
    ):
        async with session_factory() as session:
            mapping = await session.get(CourseMapping, course_mapping.id)
            mapping.course_title = None
            await session.commit()
        await _generate(orchestrator, nested_body(message_id="msg_2"))

        items = await list_certificates(db=db)
        assert items[0].course_title == "Course 101"

    async def test_empty(self, db):
        assert await list_certificates(db=db) == []


class TestRetryEndpoint:
    async def test_success_returns_certificate_url(self):
        orchestrator = MagicMock()
        certificate = MagicMock(certificate_url="https://certopus.com/c/1")
        orchestrator.retry_certificate = AsyncMock(return_value=certificate)
        cert_id = uuid.uuid4()

        result = await retry_certificate(str(cert_id), orchestrator)

        assert isinstance(result, RetryResponse)
        assert result.model_dump(by_alias=True) == {
            "success": True,
            "certificateUrl": "https://certopus.com/c/1",
        }
        orchestrator.retry_certificate.assert_awaited_once_with(cert_id)

    async def test_unknown_certificate_returns_404(self):
        orchestrator = MagicMock()
        orchestrator.retry_certificate = AsyncMock(side_effect=NotFoundError("Certificate not found"))

        result = await retry_certificate(str(uuid.uuid4()), orchestrator)

        assert result.status_code == 404
        assert json.loads(result.body) == {"success": False, "error": "Certificate not found"}

    async def test_malformed_id_returns_404(self):
        orchestrator = MagicMock()
        orchestrator.retry_certificate = AsyncMock()

        result = await retry_certificate("not-a-uuid", orchestrator)

        assert result.status_code == 404
        orchestrator.retry_certificate.assert_not_called()

    async def test_non_failed_certificate_returns_409(self):
        orchestrator = MagicMock()
        orchestrator.retry_certificate = AsyncMock(
            side_effect=RetryNotAllowedError("Certificate is SUCCESS; only FAILED certificates can be retried")
        )

        result = await retry_certificate(str(uuid.uuid4()), orchestrator)

        assert result.status_code == 409
        data = json.loads(result.body)
        assert data["success"] is False
        assert data["error"] == "Certificate cannot be retried"
        assert "SUCCESS" in data["message"]

    async def test_regeneration_failure_returns_500(self):
        orchestrator = MagicMock()
        orchestrator.retry_certificate = AsyncMock(
            side_effect=CredentialBadRequestError("Invalid credential data: nope", 400)
        )

        result = await retry_certificate(str(uuid.uuid4()), orchestrator)

        assert result.status_code == 500
        data = json.loads(result.body)
        assert data["success"] is False
        assert data["error"] == "Failed to regenerate certificate"
        assert data["message"] == "Invalid credential data: nope"

    async def test_end_to_end_retry(
        self, orchestrator, session_factory, course_mapping, nested_body, mock_credentials,
    ):
        mock_credentials.create_credential.side_effect = CredentialBadRequestError("bad", 400)
        with pytest.raises(CredentialBadRequestError):
            await _generate(orchestrator, nested_body(message_id="msg_fail"))
        mock_credentials.create_credential.side_effect = None

        async with session_factory() as session:
            cert = (await session.execute(select(Certificate))).scalar_one()

        result = await retry_certificate(str(cert.id), orchestrator)

        assert result.certificate_url == "https://certopus.com/c/cred_123"
