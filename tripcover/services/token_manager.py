import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional

import httpx
from pydantic import ValidationError

from tripcover.config import Settings, get_settings
from tripcover.errors import AssistcardAuthenticationError
from tripcover.schemas.common import CamelModel, ProviderEnvelope

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/Authentication/login"
REFRESH_PATH = "/api/Authentication/token/refresh"


class TokenData(CamelModel):
    token: str
    expiration: datetime


@dataclass
class CachedToken:
    token: str
    expires_at: datetime  # Provider expiry minus the safety margin
    refresh_cookie: Optional[str] = None


class TokenRefreshError(Exception):
    """Refresh was rejected or failed. Callers fall back to a full login."""


def utcnow() -> datetime:
    return datetime.now(UTC)


class TokenManager(ABC):
    @abstractmethod
    async def get_valid_token(self) -> str:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def has_valid_token(self) -> bool:
        """Whether a token can be served without calling the provider."""


class AssistcardTokenManager(TokenManager):
    """Owns the Assistcard bearer token for the whole process.

    A token is only handed out while it has at least the safety margin of
    validity left. Stale tokens are refreshed with the session cookie the
    provider set at login; any refresh failure drops the cache and logs in
    again with credentials.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.assistcard_api_url.rstrip("/")
        self.safety_margin = timedelta(seconds=self.settings.assistcard_token_safety_margin)
        self._clock = clock
        self._transport = transport
        self._cache: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> Optional[CachedToken]:
        return self._cache

    async def get_valid_token(self) -> str:
        """
        Return a bearer token valid for at least the safety margin.

        Raises:
            AssistcardAuthenticationError: If login is rejected or the
                provider cannot be reached
        """
        async with self._lock:
            if self._cache and self._cache.expires_at > self._clock():
                logger.debug("Using cached Assistcard token")
                return self._cache.token

            if self._cache and self._cache.refresh_cookie:
                logger.debug("Assistcard token expired, attempting refresh")
                try:
                    token, expires_at = await self._refresh(self._cache)
                    self._cache = CachedToken(
                        token=token,
                        expires_at=expires_at,
                        refresh_cookie=self._cache.refresh_cookie,
                    )
                    return token
                except (TokenRefreshError, httpx.HTTPError) as e:
                    logger.warning(
                        f"Assistcard token refresh failed, falling back to login: {e}"
                    )

            self._cache = None
            logger.info("Fetching new Assistcard token via login")
            self._cache = await self._login()
            return self._cache.token

    def has_valid_token(self) -> bool:
        return self._cache is not None and self._cache.expires_at > self._clock()

    def clear(self) -> None:
        self._cache = None
        logger.debug("Cleared Assistcard token cache")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.assistcard_timeout, transport=self._transport
        )

    def _safe_expiry(self, expiration: datetime) -> datetime:
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=UTC)
        return expiration - self.safety_margin

    async def _login(self) -> CachedToken:
        username = self.settings.assistcard_username
        password = self.settings.assistcard_password
        if not self.base_url or not username or not password:
            raise AssistcardAuthenticationError(
                "Assistcard credentials are not configured "
                "(ASSISTCARD_API_URL, ASSISTCARD_USERNAME, ASSISTCARD_PASSWORD)"
            )

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}{LOGIN_PATH}",
                    json={"userName": username, "password": password},
                    headers={"Accept": "text/plain"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Network error during Assistcard authentication: {type(e).__name__}")
            raise AssistcardAuthenticationError("Failed to connect to Assistcard API") from e

        try:
            envelope = ProviderEnvelope[TokenData].model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Assistcard login returned an unreadable response (HTTP {response.status_code})")
            raise AssistcardAuthenticationError(
                "Assistcard authentication failed: invalid response"
            ) from e

        if response.is_error or not envelope.is_success or envelope.data is None:
            reason = envelope.title or envelope.error_message or "Authentication failed"
            logger.error(
                f"Assistcard login failed: status={response.status_code} "
                f"trace_id={envelope.trace_id} error={reason}"
            )
            raise AssistcardAuthenticationError(
                f"Assistcard authentication failed: {reason} (traceId: {envelope.trace_id})"
            )

        expires_at = self._safe_expiry(envelope.data.expiration)
        if expires_at <= self._clock():
            logger.error(
                f"Assistcard issued a token inside the safety margin: trace_id={envelope.trace_id}"
            )
            raise AssistcardAuthenticationError(
                f"Assistcard token expires too soon to be used (traceId: {envelope.trace_id})"
            )

        # Keep only "name=value" from the Set-Cookie header
        set_cookie = response.headers.get("set-cookie")
        refresh_cookie = set_cookie.split(";")[0].strip() if set_cookie else None

        logger.info(
            f"Authenticated with Assistcard: trace_id={envelope.trace_id} "
            f"expires_at={expires_at.isoformat()} has_refresh_cookie={refresh_cookie is not None}"
        )
        return CachedToken(
            token=envelope.data.token, expires_at=expires_at, refresh_cookie=refresh_cookie
        )

    async def _refresh(self, cached: CachedToken) -> tuple[str, datetime]:
        if not self.base_url:
            raise TokenRefreshError("ASSISTCARD_API_URL not configured")

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}{REFRESH_PATH}",
                headers={
                    "Accept": "text/plain",
                    "Authorization": f"Bearer {cached.token}",
                    "Cookie": cached.refresh_cookie or "",
                },
            )

        try:
            envelope = ProviderEnvelope[TokenData].model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenRefreshError(
                f"unreadable refresh response (HTTP {response.status_code})"
            ) from e

        if response.is_error or not envelope.is_success or envelope.data is None:
            logger.debug(
                f"Assistcard token refresh rejected: status={response.status_code} "
                f"trace_id={envelope.trace_id} error_code={envelope.error_code}"
            )
            raise TokenRefreshError(
                f"{envelope.error_message or 'Unknown error'} (traceId: {envelope.trace_id})"
            )

        expires_at = self._safe_expiry(envelope.data.expiration)
        if expires_at <= self._clock():
            raise TokenRefreshError(
                f"refreshed token expires too soon (traceId: {envelope.trace_id})"
            )
        logger.info(
            f"Refreshed Assistcard token: trace_id={envelope.trace_id} "
            f"expires_at={expires_at.isoformat()}"
        )
        return envelope.data.token, expires_at
