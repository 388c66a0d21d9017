"""
Pipeline exception taxonomy.

Everything the ingestion and generation pipeline raises on purpose derives from
PipelineError. The orchestrator catches these at its boundary, records the
message on the certificate and ledger rows, and re-raises for the route layer
to turn into an HTTP response.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for expected pipeline failures."""


class ValidationError(PipelineError):
    """Inbound webhook body could not be normalized into a completion event."""

    def __init__(self, message: str, message_id: Optional[str] = None):
        super().__init__(message)
        self.message_id = message_id


class NotFoundError(PipelineError):
    """No active course mapping, or an unknown certificate on retry."""


class RetryNotAllowedError(PipelineError):
    """Retry requested for a certificate that is not in FAILED."""


class UpstreamDataError(PipelineError):
    """The LMS returned no user/course, or a required field such as email is missing."""


class LmsAuthenticationError(UpstreamDataError):
    """LMS token exchange failed, or a 401 persisted after one token refresh."""


class TransportError(PipelineError):
    """Network-level failure talking to the LMS or the credential service."""


class CredentialServiceError(PipelineError):
    """Non-2xx or malformed response from the credential service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def category(self) -> str:
        if self.status_code is not None and (self.status_code == 429 or self.status_code >= 500):
            return "transient"
        return "terminal"

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


class CredentialBadRequestError(CredentialServiceError):
    pass


class CredentialAuthError(CredentialServiceError):
    pass


class CredentialNotFoundError(CredentialServiceError):
    pass


class CredentialRateLimitError(CredentialServiceError):
    pass
