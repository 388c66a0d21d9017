"""
LMS domain registry - resolves a webhook's source domain name to a row id,
registering unknown domains (inactive) the first time they are seen.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database import dialect_insert
from src.models.lms_domain import LmsDomain

logger = logging.getLogger(__name__)


async def ensure_lms_domain(
    session_factory: async_sessionmaker[AsyncSession],
    name: str,
    api_url: str = "",
) -> uuid.UUID:
    """Return the id of the domain called `name`, inserting it if absent."""
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        stmt = dialect_insert(session, LmsDomain).values(
            id=uuid.uuid4(),
            name=name,
            api_url=api_url,
            active=False,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=[LmsDomain.name])
        result = await session.execute(stmt)
        await session.commit()
        if result.rowcount:
            logger.info("Registered new LMS domain %s (inactive)", name, extra={"domain": name})

        domain_id = await session.scalar(select(LmsDomain.id).where(LmsDomain.name == name))
    return domain_id
