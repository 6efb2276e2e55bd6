"""OAuth credential model for Cal.com API access.

This module defines the Credential model which stores the OAuth2 token
material granted by Cal.com for one user. Rows are created when the user
completes the OAuth grant (outside this service) and are updated in place
whenever an access token is refreshed.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel, UniqueConstraint


def as_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime.

    SQLite drops tzinfo on round-trip, so naive values are taken to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Credential(SQLModel, table=True):
    """Stored OAuth2 credentials for one (user, provider) pair.

    At most one row exists per pair.

    A null ``access_token_expires_at`` means the provider did not report an
    expiry, and the token is treated as non-expiring. The refresh token is
    only replaced when a refresh response carries a new one, so providers
    issuing reusable refresh tokens keep working.

    Attributes:
        id: Unique identifier (UUID).
        user_id: Owner of the credential.
        provider_id: OAuth provider key, "calcom" for Cal.com.
        access_token: Short-lived bearer token for API requests.
        access_token_expires_at: When the access token expires, if known.
        refresh_token: Token used to obtain new access tokens.
        refresh_token_expires_at: When the refresh token expires, if known.
        scope: Space-separated scopes granted, informational only.
        updated_at: Last time the row was written.
    """

    __table_args__ = (UniqueConstraint("user_id", "provider_id"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    provider_id: str = Field(default="calcom", index=True)
    access_token: str = ""
    access_token_expires_at: datetime | None = None
    refresh_token: str | None = None
    refresh_token_expires_at: datetime | None = None
    scope: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
