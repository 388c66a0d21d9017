"""
Canonical completion event - the shape-independent form of an LMS webhook.
Everything downstream of the normalizer works on this, never on the raw body.
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

COURSE_COMPLETED_EVENT = "course.enrollment.completed"


class CompletionEvent(BaseModel):
    """
    user_id, course_id and completion_date are always set on course completions;
    ignored events carry whatever the sender supplied.
    """
    model_config = ConfigDict(frozen=True)

    event_kind: str
    user_id: Optional[int] = None
    course_id: Optional[int] = None
    completion_date: Optional[date] = None
    message_id: str = Field(..., description="Sender's id, or webhook_<ms> when the sender gave none")
    domain: str = Field(..., description="Source LMS domain, or the configured sentinel")
    status: Optional[str] = None
    enrollment_date: Optional[date] = None

    @property
    def is_course_completion(self) -> bool:
        """Only completed enrollments generate certificates; everything else is ignored."""
        return self.event_kind == COURSE_COMPLETED_EVENT and (
            not self.status or self.status == "completed"
        )
