"""Database configuration and session management.

The credential and session tables are owned by the OAuth/auth layer that
creates them; this service only reads sessions and updates credentials.
``create_db_and_tables`` exists so a local SQLite file works out of the box.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: token refreshes write while other
      requests read credentials; WAL keeps readers unblocked.

    - **check_same_thread=False**: FastAPI may hand a session to a
      different thread than the one that opened the connection.
"""

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from insights.core.config import settings

is_sqlite = settings.database_url.startswith("sqlite")
connect_args = {"check_same_thread": False} if is_sqlite else {}

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


if is_sqlite:

    @sa_event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite pragmas on each new connection."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_and_tables():
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency for getting database session."""
    with Session(engine) as session:
        yield session
