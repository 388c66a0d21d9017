"""
LMS entities as the pipeline sees them, independent of upstream response shapes.
"""
from typing import Optional

from pydantic import BaseModel


class LmsUser(BaseModel):
    id: int
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    active: bool = True

    @property
    def full_name(self) -> str:
        """First + last name, else username, else a placeholder built from the id."""
        name = " ".join(part.strip() for part in (self.first_name, self.last_name) if part and part.strip())
        return name or self.username or f"User {self.id}"


class LmsCourse(BaseModel):
    id: int
    name: str = ""
    code: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    status: Optional[str] = None
    course_type: Optional[str] = None
