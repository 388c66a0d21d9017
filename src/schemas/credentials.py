"""
Credential-service request/response models.
"""
from typing import Optional

from pydantic import BaseModel, Field


class CredentialRequest(BaseModel):
    organisation_id: str
    event_id: str
    category_id: str = ""
    recipient_name: str
    recipient_email: str
    custom_fields: dict[str, str] = Field(default_factory=dict)
    auto_generate: bool = False
    auto_publish: bool = False


class CredentialResult(BaseModel):
    id: str
    message: str = "Credential created successfully"
    url: Optional[str] = None
    share_url: Optional[str] = None
