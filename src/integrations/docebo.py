"""
Docebo LMS integration.
OAuth 2.0 password grant; tokens are cached per domain until a minute before expiry.
Every request carries the X-Domain header selecting the LMS instance.
On a 401 the cached token is dropped and the call is retried exactly once.
"""
import logging
import time
from typing import Any, Optional

import httpx

from src.integrations.lms_base import LmsGateway
from src.schemas.lms import LmsCourse, LmsUser
from src.utils.errors import LmsAuthenticationError, TransportError, UpstreamDataError
from src.utils.logging import mask_email

logger = logging.getLogger(__name__)

DOCEBO_API_BASE = "https://doceboapi.docebosaas.com"
TOKEN_REFRESH_MARGIN_SECONDS = 60


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _first(data: dict, *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return ""


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _parse_user(user_data: dict, user_id: int) -> LmsUser:
    """Build an LmsUser from either of the field layouts Docebo returns."""
    full_name = _first(user_data, "name").strip()
    name_parts = full_name.split(" ") if full_name else []

    active = user_data.get("active")
    if not isinstance(active, bool):
        valid = user_data.get("valid")
        active = str(valid) == "1" if valid is not None else True

    return LmsUser(
        id=_as_int(user_data.get("user_id") or user_data.get("id"), user_id),
        email=_first(user_data, "email", "mail", "user_email").strip(),
        first_name=_first(user_data, "first_name", "firstname") or (name_parts[0] if name_parts else ""),
        last_name=_first(user_data, "last_name", "lastname") or " ".join(name_parts[1:]),
        username=_first(user_data, "username", "user_name", "userid"),
        active=active,
    )


class DoceboLMS(LmsGateway):
    """Docebo REST API gateway (manage/v1 users, learn/v1 courses)."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        base_url: str = DOCEBO_API_BASE,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self.timeout = timeout
        # domain -> (access_token, expires_at)
        self._tokens: dict[str, tuple[str, float]] = {}

    async def _get_token(self, domain: str) -> str:
        """Get or refresh the OAuth token for a domain."""
        cached = self._tokens.get(domain)
        if cached and time.time() < cached[1]:
            return cached[0]

        if not self.client_id or not self.client_secret:
            raise LmsAuthenticationError("Docebo client id and client secret are required")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/oauth2/token",
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "password",
                        "scope": "api",
                        "username": self.username,
                        "password": self.password,
                    },
                    headers={"X-Domain": domain},
                )
        except httpx.RequestError as e:
            raise TransportError(f"Docebo authentication request failed: {e}") from e

        if response.status_code >= 400:
            raise LmsAuthenticationError(
                f"Docebo authentication failed ({response.status_code}): {response.text[:200]}"
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise LmsAuthenticationError("Docebo token response did not include an access_token")

        expires_in = float(data.get("expires_in", 3600))
        self._tokens[domain] = (token, time.time() + expires_in - TOKEN_REFRESH_MARGIN_SECONDS)
        logger.info("Authenticated with Docebo", extra={"domain": domain})
        return token

    def invalidate_token(self, domain: str) -> None:
        self._tokens.pop(domain, None)

    async def _send(self, path: str, domain: str, params: Optional[dict]) -> httpx.Response:
        token = await self._get_token(domain)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.get(
                    f"{self.base_url}{path}",
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                        "X-Domain": domain,
                    },
                    params=params,
                )
        except httpx.RequestError as e:
            raise TransportError(f"Docebo request {path} failed: {e}") from e

    async def _get(self, path: str, domain: str, params: Optional[dict] = None) -> Optional[dict]:
        """Authenticated GET. Returns None on 404."""
        response = await self._send(path, domain, params)
        if response.status_code == 401:
            logger.info("Docebo token rejected; re-authenticating once", extra={"domain": domain})
            self.invalidate_token(domain)
            response = await self._send(path, domain, params)
            if response.status_code == 401:
                raise LmsAuthenticationError(f"Docebo rejected a freshly issued token for {path}")

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise UpstreamDataError(
                f"Docebo request {path} failed ({response.status_code}): {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamDataError(f"Docebo returned invalid JSON for {path}") from e

    async def _get_user_primary(self, user_id: int, domain: str) -> Optional[LmsUser]:
        body = await self._get(f"/manage/v1/user/{user_id}", domain)
        if not isinstance(body, dict):
            return None
        raw = body.get("data") or body
        if not isinstance(raw, dict):
            return None
        user_data = raw.get("user_data") or raw
        if not isinstance(user_data, dict) or not user_data:
            return None
        return _parse_user(user_data, user_id)

    async def _get_user_by_search(self, user_id: int, domain: str) -> Optional[LmsUser]:
        """Secondary lookup through the users listing, filtered by id."""
        body = await self._get(
            "/manage/v1/users", domain,
            params={"search_text": str(user_id), "page_size": 1},
        )
        data = body.get("data") if isinstance(body, dict) else None
        items = data.get("items") if isinstance(data, dict) else None
        for item in items or []:
            if not isinstance(item, dict):
                continue
            if _as_int(item.get("id") or item.get("user_id"), -1) == user_id:
                return _parse_user(item, user_id)
        return None

    async def get_user_details(self, user_id: int, domain: str) -> Optional[LmsUser]:
        user = await self._get_user_primary(user_id, domain)
        if user and user.email:
            logger.info(
                "Retrieved Docebo user %s (%s)", user_id, mask_email(user.email),
                extra={"user_id": user_id, "domain": domain},
            )
            return user

        logger.info(
            "No email from primary user lookup; trying users search",
            extra={"user_id": user_id, "domain": domain},
        )
        alternative = await self._get_user_by_search(user_id, domain)
        if alternative and alternative.email:
            return alternative
        return user or alternative

    async def get_course_details(self, course_id: int, domain: str) -> Optional[LmsCourse]:
        body = await self._get(f"/learn/v1/courses/{course_id}", domain)
        course = body.get("data") if isinstance(body, dict) else None
        if not isinstance(course, dict) or not course:
            return None

        logger.info(
            "Retrieved Docebo course %s", course_id,
            extra={"course_id": course_id, "domain": domain},
        )
        return LmsCourse(
            id=_as_int(course.get("id"), course_id),
            name=str(course.get("name") or ""),
            code=_opt_str(course.get("code")),
            description=_opt_str(course.get("description")),
            language=_opt_str(course.get("language")),
            status=_opt_str(course.get("status")),
            course_type=_opt_str(course.get("course_type")),
        )
