"""FastAPI dependencies wiring the booking pipeline to a request."""
from datetime import UTC, datetime

import httpx
from fastapi import Depends, Header, Request
from sqlmodel import Session, select

from insights.cal.service import BookingsService
from insights.cal.tokens import CredentialStore, RefreshLocks, TokenRefresher
from insights.core.config import Settings, settings
from insights.core.database import get_session
from insights.core.errors import AuthenticationError, AuthorizationError
from insights.models import UserSession
from insights.models.credential import as_utc


def get_settings() -> Settings:
    return settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared upstream client created in the application lifespan."""
    return request.app.state.http_client


def get_refresh_locks(request: Request) -> RefreshLocks:
    return request.app.state.refresh_locks


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from a ``Bearer <token>`` header value, or None."""
    if not authorization:
        return None
    trimmed = authorization.strip()
    if not trimmed.lower().startswith("bearer "):
        return None
    token = trimmed[7:].strip()
    return token or None


def get_current_user_id(
    authorization: str | None = Header(default=None),
    session: Session = Depends(get_session),
) -> str:
    """Resolve the session token in the Authorization header to a user id."""
    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthenticationError(
            "Missing or invalid Authorization header. Expected `Bearer <token>`."
        )

    user_session = session.exec(select(UserSession).where(UserSession.token == token)).first()
    if user_session is None:
        raise AuthenticationError("No session found")
    if as_utc(user_session.expires_at) <= datetime.now(UTC):
        raise AuthenticationError("Session expired")
    return user_session.user_id


def require_same_user(requested_user_id: str, session_user_id: str) -> str:
    if requested_user_id != session_user_id:
        raise AuthorizationError("User ID mismatch")
    return session_user_id


def get_token_refresher(
    session: Session = Depends(get_session),
    client: httpx.AsyncClient = Depends(get_http_client),
    locks: RefreshLocks = Depends(get_refresh_locks),
    settings: Settings = Depends(get_settings),
) -> TokenRefresher:
    store = CredentialStore(session, provider_id=settings.cal_provider_id)
    return TokenRefresher(store, client, settings=settings, locks=locks)


def get_bookings_service(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> BookingsService:
    return BookingsService(client, settings=settings)
