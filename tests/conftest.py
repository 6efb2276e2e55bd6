"""Shared test fixtures."""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from insights.cal.tokens import CredentialStore, TokenRefresher
from insights.core.config import Settings
from insights.core.database import get_session
from insights.core.dependencies import get_http_client, get_settings
from insights.main import app
from insights.models import Credential, UserSession

API_BASE_URL = "https://cal.test/v2"
TOKEN_URL = "https://cal.test/oauth/refresh"
SESSION_TOKEN = "session-token-abc"
USER_ID = "user-1"


def make_booking(booking_id: int = 1, **overrides) -> dict:
    """Build a Cal.com booking payload with every required field."""
    booking = {
        "id": booking_id,
        "uid": f"uid-{booking_id}",
        "title": f"Meeting {booking_id}",
        "description": "Weekly sync",
        "hosts": [
            {
                "id": 10,
                "name": "Host Person",
                "email": "host@example.com",
                "username": "host",
                "timeZone": "Europe/London",
            }
        ],
        "status": "accepted",
        "start": "2024-05-01T10:00:00Z",
        "end": "2024-05-01T10:30:00Z",
        "duration": 30,
        "eventTypeId": 7,
        "eventType": {"id": 7, "slug": "30min"},
        "meetingUrl": "https://meet.example.com/abc",
        "location": "https://meet.example.com/abc",
        "absentHost": False,
        "createdAt": "2024-04-20T09:00:00Z",
        "updatedAt": "2024-04-21T09:00:00Z",
        "attendees": [
            {
                "name": "Guest Person",
                "email": "guest@example.com",
                "timeZone": "America/New_York",
                "language": "en",
                "absent": False,
            }
        ],
    }
    booking.update(overrides)
    return booking


class FakeUpstream:
    """Stands in for Cal.com behind an ``httpx.MockTransport``.

    ``bookings`` and ``token`` are either ``(status, body)`` tuples or
    callables taking the request and returning an ``httpx.Response``.
    Every request is recorded in ``requests``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.bookings = (200, [])
        self.token = (
            200,
            {"access_token": "refreshed-token", "refresh_token": "rotated-refresh", "expires_in": 3600},
        )

    def _respond(self, reply, request: httpx.Request) -> httpx.Response:
        if callable(reply):
            return reply(request)
        status, body = reply
        if isinstance(body, (str, bytes)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/bookings"):
            return self._respond(self.bookings, request)
        if str(request.url) == TOKEN_URL:
            return self._respond(self.token, request)
        return httpx.Response(404, json={"error": "not found"})

    def requests_to(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(
        _env_file=None,
        cal_client_id="client-id",
        cal_client_secret="client-secret",
        cal_api_base_url=API_BASE_URL,
        cal_oauth_token_url=TOKEN_URL,
    )


@pytest.fixture(name="make_booking")
def make_booking_fixture():
    """Factory for Cal.com booking payloads."""
    return make_booking


@pytest.fixture(name="upstream")
def upstream_fixture() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture(name="http_client")
def http_client_fixture(upstream: FakeUpstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handle))
    yield client
    asyncio.run(client.aclose())


@pytest.fixture(name="client")
def client_fixture(session: Session, http_client: httpx.AsyncClient, settings: Settings):
    """Create a test client wired to the test database and fake upstream."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_settings] = lambda: settings
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="user_session")
def user_session_fixture(session: Session) -> UserSession:
    """A valid login session for USER_ID."""
    user_session = UserSession(
        token=SESSION_TOKEN,
        user_id=USER_ID,
        expires_at=datetime.now(UTC) + timedelta(days=1),
    )
    session.add(user_session)
    session.commit()
    session.refresh(user_session)
    return user_session


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(user_session: UserSession) -> dict:
    return {"Authorization": f"Bearer {SESSION_TOKEN}"}


@pytest.fixture(name="credential")
def credential_fixture(session: Session) -> Credential:
    """A Cal.com credential whose access token is valid for another hour."""
    credential = Credential(
        user_id=USER_ID,
        provider_id="calcom",
        access_token="stored-token",
        access_token_expires_at=datetime.now(UTC) + timedelta(hours=1),
        refresh_token="refresh-token",
    )
    session.add(credential)
    session.commit()
    session.refresh(credential)
    return credential


@pytest.fixture(name="refresher")
def refresher_fixture(
    session: Session, http_client: httpx.AsyncClient, settings: Settings
) -> TokenRefresher:
    return TokenRefresher(CredentialStore(session), http_client, settings=settings)
