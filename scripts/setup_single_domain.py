"""
Create the single LMS domain for a one-tenant deployment.

The domain name is the host part of DOCEBO_API_URL and the row is created
active. Does nothing when any domain already exists.

Usage:
    python scripts/setup_single_domain.py
"""
import asyncio
import logging
import re
import sys

from sqlalchemy import select

from src.config import get_settings
from src.database import async_session_factory
from src.models.lms_domain import LmsDomain

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def domain_name_from_url(api_url: str) -> str:
    """https://acme.docebosaas.com/api -> acme.docebosaas.com"""
    return re.sub(r"/.*$", "", re.sub(r"^https?://", "", api_url))


async def setup_single_domain() -> None:
    settings = get_settings()

    async with async_session_factory() as db:
        existing = (await db.execute(select(LmsDomain).limit(1))).scalar_one_or_none()
        if existing:
            logger.info("Domain already exists: %s", existing.name)
            return

        if not settings.docebo_api_url or not settings.docebo_api_username or not settings.docebo_api_password:
            raise RuntimeError(
                "Missing required environment variables: "
                "DOCEBO_API_URL, DOCEBO_API_USERNAME, DOCEBO_API_PASSWORD"
            )

        domain = LmsDomain(
            name=domain_name_from_url(settings.docebo_api_url),
            api_url=settings.docebo_api_url,
            active=True,
        )
        db.add(domain)
        await db.commit()
        logger.info("Created domain: %s", domain.name)


if __name__ == "__main__":
    try:
        asyncio.run(setup_single_domain())
    except Exception as e:
        logger.error("Single domain setup failed: %s", str(e))
        sys.exit(1)
