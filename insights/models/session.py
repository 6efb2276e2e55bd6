"""Login session model used to resolve the calling user.

Sessions are issued by the sign-in flow; this service only looks them up
by the opaque token presented in the ``Authorization`` header.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class UserSession(SQLModel, table=True):
    """An authenticated browser or API session.

    Attributes:
        id: Unique identifier (UUID).
        token: Opaque bearer value presented by the client (unique).
        user_id: The user this session belongs to.
        expires_at: After this instant the session is rejected.
    """
    __tablename__ = "user_session"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    token: str = Field(index=True, unique=True)
    user_id: str = Field(index=True)
    expires_at: datetime
