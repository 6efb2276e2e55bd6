"""Cal.com OAuth credential storage and access-token refresh.

Access tokens are refreshed lazily: ``TokenRefresher.get_valid_access_token``
returns the stored token unless it expires within the configured buffer
(five minutes by default), in which case it exchanges the refresh token
first. A credential with no recorded expiry is never refreshed here; if the
token has in fact expired, the bookings call fails with an upstream 401.

Refreshes for the same credential are serialized within one process, and
the credential is re-read once the lock is held, so concurrent requests
that all saw an expired token perform a single exchange. Separate worker
processes are not coordinated.
"""
import asyncio
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from insights.core.config import Settings, settings as default_settings
from insights.core.errors import (
    ConfigError,
    InvalidStateError,
    NotFoundError,
    TokenPersistenceError,
    UpstreamError,
    UpstreamTimeoutError,
)
from insights.models import Credential
from insights.models.credential import as_utc
from insights.schemas.token import TokenResponse

logger = logging.getLogger(__name__)


@dataclass
class TokenRefreshResult:
    access_token: str
    refreshed: bool
    expires_at: datetime | None = None


class CredentialStore:
    """Reads and updates Credential rows for one OAuth provider."""

    def __init__(self, session: Session, provider_id: str = default_settings.cal_provider_id):
        self.session = session
        self.provider_id = provider_id

    def get(self, user_id: str) -> Credential | None:
        statement = (
            select(Credential)
            .where(Credential.user_id == user_id)
            .where(Credential.provider_id == self.provider_id)
        )
        return self.session.exec(statement).first()

    def reload(self, credential: Credential) -> Credential:
        """Discard cached attribute values and read the row again."""
        self.session.refresh(credential)
        return credential

    def save_refreshed(
        self,
        credential: Credential,
        access_token: str,
        expires_at: datetime | None,
        refresh_token: str | None,
    ) -> Credential:
        """Store a refreshed token pair. The refresh token is kept if none was issued."""
        credential.access_token = access_token
        credential.access_token_expires_at = expires_at
        if refresh_token:
            credential.refresh_token = refresh_token
        credential.updated_at = datetime.now(UTC)
        self.session.add(credential)
        self.session.commit()
        self.session.refresh(credential)
        return credential

    def rollback(self) -> None:
        self.session.rollback()


class RefreshLocks:
    """Per-credential locks that serialize refreshes within one process.

    A lock lives only while some request holds or awaits it.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def for_credential(self, user_id: str, provider_id: str) -> asyncio.Lock:
        key = (user_id, provider_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class TokenRefresher:
    """Resolve a usable Cal.com access token for a user, refreshing when needed."""

    def __init__(
        self,
        store: CredentialStore,
        client: httpx.AsyncClient,
        settings: Settings = default_settings,
        locks: RefreshLocks | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.client = client
        self.settings = settings
        self.locks = locks if locks is not None else RefreshLocks()
        self._now = now or (lambda: datetime.now(UTC))

    def _load(self, user_id: str) -> Credential:
        credential = self.store.get(user_id)
        if credential is None:
            raise NotFoundError("No Cal.com account found for user")
        return credential

    def _lock(self, credential: Credential) -> asyncio.Lock:
        return self.locks.for_credential(credential.user_id, credential.provider_id)

    def is_expired(self, credential: Credential) -> bool:
        expires_at = as_utc(credential.access_token_expires_at)
        if expires_at is None:
            return False
        buffer = timedelta(seconds=self.settings.token_expiry_buffer_seconds)
        return expires_at - self._now() < buffer

    async def get_valid_access_token(self, user_id: str) -> str:
        """Return an access token that is valid for at least the expiry buffer."""
        result = await self.ensure_fresh(user_id)
        return result.access_token

    async def ensure_fresh(self, user_id: str) -> TokenRefreshResult:
        """Like ``get_valid_access_token`` but also reports whether a refresh happened."""
        credential = self._load(user_id)
        if not credential.access_token:
            raise InvalidStateError("No access token available for user")

        if not self.is_expired(credential):
            return TokenRefreshResult(
                access_token=credential.access_token,
                refreshed=False,
                expires_at=as_utc(credential.access_token_expires_at),
            )

        async with self._lock(credential):
            self.store.reload(credential)
            if credential.access_token and not self.is_expired(credential):
                logger.info(f"Access token for user {user_id} was refreshed concurrently")
                return TokenRefreshResult(
                    access_token=credential.access_token,
                    refreshed=False,
                    expires_at=as_utc(credential.access_token_expires_at),
                )
            return await self._refresh(credential)

    async def refresh_access_token(self, user_id: str) -> TokenRefreshResult:
        """Exchange the refresh token now, regardless of the access token's expiry."""
        credential = self._load(user_id)
        async with self._lock(credential):
            self.store.reload(credential)
            return await self._refresh(credential)

    async def _refresh(self, credential: Credential) -> TokenRefreshResult:
        if not credential.refresh_token:
            raise InvalidStateError("No refresh token available for user")

        refresh_expires_at = as_utc(credential.refresh_token_expires_at)
        if refresh_expires_at is not None and refresh_expires_at < self._now():
            raise InvalidStateError("Refresh token has expired")

        if not self.settings.cal_client_id or not self.settings.cal_client_secret:
            raise ConfigError("Cal.com OAuth credentials not configured")

        token = await self._exchange(credential.refresh_token)

        expires_at = None
        if token.expires_in is not None:
            expires_at = self._now() + timedelta(seconds=token.expires_in)

        self._persist(credential, token, expires_at)
        logger.info(f"Refreshed Cal.com access token for user {credential.user_id}")
        return TokenRefreshResult(
            access_token=token.access_token,
            refreshed=True,
            expires_at=expires_at,
        )

    async def _exchange(self, refresh_token: str) -> TokenResponse:
        """POST the refresh grant to the token endpoint and validate the reply."""
        body = {
            "grant_type": "refresh_token",
            "client_id": self.settings.cal_client_id,
            "client_secret": self.settings.cal_client_secret,
            "refresh_token": refresh_token,
        }
        headers = {"Accept": "application/json"}
        if self.settings.cal_token_refresh_bearer:
            headers["Authorization"] = f"Bearer {refresh_token.strip()}"

        if self.settings.cal_token_request_format == "form":
            request_body = {"data": body}
        else:
            request_body = {"json": body}

        url = self.settings.cal_oauth_token_url
        try:
            response = await self.client.post(
                url,
                headers=headers,
                timeout=self.settings.http_timeout_seconds,
                **request_body,
            )
        except httpx.TimeoutException as exc:
            logger.error("Cal.com token refresh timed out")
            raise UpstreamTimeoutError("Cal.com token refresh timed out.") from exc
        except httpx.RequestError as exc:
            logger.error(f"Cal.com token refresh request failed: {exc}")
            raise UpstreamError(f"Cal.com token refresh request failed: {exc}") from exc

        if not response.is_success:
            logger.error(f"Cal.com token refresh failed with status {response.status_code}")
            raise UpstreamError(
                "Failed to refresh access token",
                upstream_status=response.status_code,
                body=_response_body(response),
            )

        try:
            return TokenResponse.model_validate_json(response.content)
        except PydanticValidationError as exc:
            logger.error("Cal.com token refresh returned an invalid body")
            raise UpstreamError(
                "Invalid refresh token response",
                upstream_status=response.status_code,
                body=_response_body(response),
            ) from exc

    def _persist(
        self,
        credential: Credential,
        token: TokenResponse,
        expires_at: datetime | None,
    ) -> None:
        """Write the new tokens, retrying the local write once.

        The exchange has already succeeded at this point. With single-use
        refresh tokens the old one is gone, so losing this write would
        force the user to reconnect.
        """
        last_error: SQLAlchemyError | None = None
        for attempt in (1, 2):
            try:
                self.store.save_refreshed(
                    credential, token.access_token, expires_at, token.refresh_token
                )
                return
            except SQLAlchemyError as exc:
                last_error = exc
                self.store.rollback()
                logger.warning(
                    f"Storing refreshed token for user {credential.user_id} failed "
                    f"(attempt {attempt}): {exc}"
                )

        logger.error(
            f"Refreshed token for user {credential.user_id} could not be stored; "
            "the previous refresh token may no longer be accepted"
        )
        raise TokenPersistenceError(
            details={"userId": credential.user_id, "refreshTokenRotated": bool(token.refresh_token)}
        ) from last_error
