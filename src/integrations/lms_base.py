"""
Abstract LMS gateway - the read operations the certificate pipeline needs.
Implementations return None when the entity cannot be found after every
fallback; transport and authentication failures raise.
"""
from abc import ABC, abstractmethod
from typing import Optional

from src.schemas.lms import LmsCourse, LmsUser


class LmsGateway(ABC):
    """Abstract base class for LMS integrations."""

    @abstractmethod
    async def get_user_details(self, user_id: int, domain: str) -> Optional[LmsUser]:
        """
        Fetch a user profile. Must try a secondary lookup when the primary one
        yields no usable email.
        """
        ...

    @abstractmethod
    async def get_course_details(self, course_id: int, domain: str) -> Optional[LmsCourse]:
        """Fetch a course profile."""
        ...
