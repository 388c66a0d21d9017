"""
Certopus credential-service client.
API-key auth via the X-API-KEY header. Only credential creation is used by the
pipeline; failures are raised as CredentialServiceError subtypes keyed on the
HTTP status so callers can tell bad data from auth or rate-limit problems.
"""
import logging

import httpx

from src.schemas.credentials import CredentialRequest, CredentialResult
from src.utils.errors import (
    CredentialAuthError,
    CredentialBadRequestError,
    CredentialNotFoundError,
    CredentialRateLimitError,
    CredentialServiceError,
    TransportError,
)
from src.utils.logging import mask_email

logger = logging.getLogger(__name__)

CERTOPUS_API_BASE = "https://api.certopus.com/v1"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text[:200]


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    detail = _error_detail(response)
    if status == 400:
        raise CredentialBadRequestError(f"Invalid credential data: {detail or 'Bad request'}", status)
    if status == 401:
        raise CredentialAuthError("Certopus API authentication failed - check API key", status)
    if status == 404:
        raise CredentialNotFoundError(
            "Resource not found - check organisation, event, or category ID", status
        )
    if status == 429:
        raise CredentialRateLimitError("Certopus API rate limit exceeded", status)
    raise CredentialServiceError(f"Certopus API error ({status}): {detail}", status)


class CertopusClient:
    """Thin async client for the Certopus v1 API."""

    def __init__(self, api_key: str, base_url: str = CERTOPUS_API_BASE, timeout: float = 15.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-API-KEY": self.api_key,
        }

    def validate_configuration(self) -> None:
        if not self.base_url:
            raise CredentialServiceError("CERTOPUS_API_URL is not configured")
        if not self.api_key:
            raise CredentialServiceError("CERTOPUS_API_KEY is not configured")

    async def create_credential(self, request: CredentialRequest) -> CredentialResult:
        """Create (and optionally generate/publish) a credential for one recipient."""
        self.validate_configuration()

        payload = {
            "organisationId": request.organisation_id,
            "eventId": request.event_id,
            "categoryId": request.category_id,
            "generate": request.auto_generate,
            "publish": request.auto_publish,
            "recipients": [
                {
                    "email": request.recipient_email,
                    "data": request.custom_fields,
                }
            ],
        }
        logger.info(
            "Creating Certopus credential for %s (org=%s event=%s)",
            mask_email(request.recipient_email), request.organisation_id, request.event_id,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/certificates",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            raise TransportError(f"Certopus request failed: {e}") from e

        _raise_for_status(response)

        try:
            result = response.json()
        except ValueError as e:
            raise CredentialServiceError(
                "Certopus returned a non-JSON response", response.status_code
            ) from e
        if not isinstance(result, dict):
            raise CredentialServiceError(
                "Certopus returned an unexpected response body", response.status_code
            )

        credential = CredentialResult(
            id=str(result.get("id") or result.get("message_id") or "unknown"),
            message=result.get("message") or "Credential created successfully",
            url=result.get("url") or result.get("share_url"),
            share_url=result.get("share_url"),
        )
        logger.info("Certopus credential created: %s", credential.id)
        return credential
