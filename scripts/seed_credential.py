#!/usr/bin/env python3
"""
Local setup script to store a Cal.com credential and a login session.

In production both rows are written by the sign-in and OAuth flows. For
local development, run this once with tokens from a Cal.com OAuth client,
then call the API with the printed session token.

Usage:
    python scripts/seed_credential.py --user-id=me --access-token=XXX --refresh-token=YYY

Options:
    --expires-in     Seconds until the access token expires (omit for no expiry)
    --session-days   Lifetime of the login session in days (default 30)
"""
import argparse
import secrets
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session, select

from insights.core.config import settings
from insights.core.database import create_db_and_tables, engine
from insights.models import Credential, UserSession


def upsert_credential(
    session: Session,
    user_id: str,
    access_token: str,
    refresh_token: str | None,
    expires_in: int | None,
) -> Credential:
    """Create or replace the Cal.com credential for a user."""
    credential = session.exec(
        select(Credential)
        .where(Credential.user_id == user_id)
        .where(Credential.provider_id == settings.cal_provider_id)
    ).first()
    if credential is None:
        credential = Credential(user_id=user_id, provider_id=settings.cal_provider_id)

    now = datetime.now(UTC)
    credential.access_token = access_token
    credential.refresh_token = refresh_token
    credential.access_token_expires_at = (
        now + timedelta(seconds=expires_in) if expires_in is not None else None
    )
    credential.updated_at = now
    session.add(credential)
    return credential


def main():
    parser = argparse.ArgumentParser(description="Seed a Cal.com credential for local use")
    parser.add_argument("--user-id", required=True, help="User the credential belongs to")
    parser.add_argument("--access-token", required=True, help="Cal.com access token")
    parser.add_argument("--refresh-token", help="Cal.com refresh token")
    parser.add_argument("--expires-in", type=int, help="Access token lifetime in seconds")
    parser.add_argument("--session-days", type=int, default=30, help="Session lifetime in days")
    args = parser.parse_args()

    if args.session_days <= 0:
        print("Error: --session-days must be positive.")
        sys.exit(1)

    create_db_and_tables()

    with Session(engine) as session:
        upsert_credential(
            session, args.user_id, args.access_token, args.refresh_token, args.expires_in
        )
        user_session = UserSession(
            token=secrets.token_urlsafe(32),
            user_id=args.user_id,
            expires_at=datetime.now(UTC) + timedelta(days=args.session_days),
        )
        session.add(user_session)
        session.commit()
        token = user_session.token

    print("=" * 60)
    print(f"Stored Cal.com credential for user {args.user_id}")
    print("=" * 60)
    print()
    print("Call the API with:")
    print()
    print(f"Authorization: Bearer {token}")
    print()
    print("=" * 60)


if __name__ == "__main__":
    main()
