"""
Course mapping resolution.
Uniqueness of (domain, course) is enforced by the table constraint; this lookup
takes the first active row and fails loudly when there is none.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.models.course_mapping import CourseMapping
from src.models.lms_domain import LmsDomain
from src.utils.errors import NotFoundError


async def resolve_course_mapping(session: AsyncSession, domain: str, course_id: int) -> CourseMapping:
    """Return the active mapping for (domain, course_id) or raise NotFoundError."""
    result = await session.execute(
        select(CourseMapping)
        .join(LmsDomain, CourseMapping.domain_id == LmsDomain.id)
        .where(
            LmsDomain.name == domain,
            CourseMapping.lms_course_id == course_id,
            CourseMapping.active.is_(True),
        )
        .options(selectinload(CourseMapping.domain))
        .limit(1)
    )
    mapping = result.scalar_one_or_none()
    if mapping is None:
        raise NotFoundError(f"No course mapping found for course_id: {course_id} in domain: {domain}")
    return mapping
