"""
Test configuration and fixtures.
Uses file-backed SQLite per test (the pipeline opens several sessions per event,
which an in-memory database would not share). Mocks all external services.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./certbridge_test.db")

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

from src.database import Base
from src.integrations.certopus import CertopusClient
from src.integrations.lms_base import LmsGateway
from src.models.course_mapping import CourseMapping
from src.models.lms_domain import LmsDomain
from src.schemas.credentials import CredentialResult
from src.schemas.lms import LmsCourse, LmsUser
from src.services.certificate_generation import CertificateOrchestrator
from src.services.webhook_ledger import WebhookLedger

TEST_DOMAIN = "acme.docebosaas.com"
TEST_COURSE_ID = 101
TEST_USER_ID = 12345


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def ledger(session_factory):
    return WebhookLedger(session_factory)


@pytest.fixture
async def lms_domain(session_factory):
    """Active LMS domain row."""
    async with session_factory() as session:
        domain = LmsDomain(name=TEST_DOMAIN, api_url=f"https://{TEST_DOMAIN}", active=True)
        session.add(domain)
        await session.commit()
    return domain


@pytest.fixture
async def course_mapping(session_factory, lms_domain):
    """Active mapping for TEST_COURSE_ID in TEST_DOMAIN."""
    async with session_factory() as session:
        mapping = CourseMapping(
            domain_id=lms_domain.id,
            lms_course_id=TEST_COURSE_ID,
            course_title="Safety Basics",
            organisation_id="org_1",
            event_id="evt_1",
            category_id="cat_1",
            field_mappings={"{Name}": "user_name", "{Date}": "completion_date"},
            auto_generate=True,
            auto_publish=False,
            active=True,
        )
        session.add(mapping)
        await session.commit()
    return mapping


@pytest.fixture
def sample_user():
    return LmsUser(
        id=TEST_USER_ID,
        email="jane.doe@example.com",
        first_name="Jane",
        last_name="Doe",
        username="jdoe",
    )


@pytest.fixture
def sample_course():
    return LmsCourse(
        id=TEST_COURSE_ID,
        name="Safety Basics",
        description="Workplace safety fundamentals",
    )


@pytest.fixture
def mock_lms(sample_user, sample_course):
    """LMS gateway double returning sample_user / sample_course."""
    lms = MagicMock(spec=LmsGateway)
    lms.get_user_details = AsyncMock(return_value=sample_user)
    lms.get_course_details = AsyncMock(return_value=sample_course)
    return lms


@pytest.fixture
def mock_credentials():
    """Credential-service double returning a successful credential."""
    client = MagicMock(spec=CertopusClient)
    client.create_credential = AsyncMock(
        return_value=CredentialResult(
            id="cred_123",
            url="https://certopus.com/c/cred_123",
            share_url="https://certopus.com/c/cred_123",
        )
    )
    return client


@pytest.fixture
def orchestrator(session_factory, ledger, mock_lms, mock_credentials):
    return CertificateOrchestrator(
        session_factory=session_factory,
        lms=mock_lms,
        credentials=mock_credentials,
        ledger=ledger,
        default_domain="default",
        domain_api_url="https://doceboapi.docebosaas.com",
    )


def _nested_body(
    message_id: str = "msg_1",
    event: str = "course.enrollment.completed",
    domain: str = TEST_DOMAIN,
    user_id=TEST_USER_ID,
    course_id=TEST_COURSE_ID,
    completion_date="2024-03-01 10:00:00",
    **payload_extra,
) -> dict:
    """Webhook body in the nested envelope shape."""
    return {
        "event": {
            "body": {
                "event": event,
                "message_id": message_id,
                "original_domain": domain,
                "payload": {
                    "user_id": user_id,
                    "course_id": course_id,
                    "completion_date": completion_date,
                    **payload_extra,
                },
            }
        }
    }


def _flat_body(
    message_id: str | None = "msg_1",
    event: str | None = "course.enrollment.completed",
    domain: str | None = TEST_DOMAIN,
    user_id=TEST_USER_ID,
    course_id=TEST_COURSE_ID,
    completion_date="2024-03-01 10:00:00",
    **payload_extra,
) -> dict:
    """Webhook body in the flat document shape."""
    body = {
        "payload": {
            "user_id": user_id,
            "course_id": course_id,
            "completion_date": completion_date,
            **payload_extra,
        }
    }
    if event is not None:
        body["event"] = event
    if message_id is not None:
        body["message_id"] = message_id
    if domain is not None:
        body["original_domain"] = domain
    return body


@pytest.fixture
def nested_body():
    """Builder for nested-shape webhook bodies."""
    return _nested_body


@pytest.fixture
def flat_body():
    """Builder for flat-shape webhook bodies."""
    return _flat_body
