"""Database engine configuration."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from mistake_book.core.config import settings


def create_db_engine() -> Engine:
    """Create SQLAlchemy engine."""
    if settings.is_sqlite:
        # Sessions are handed across the threadpool used for sync endpoints
        return create_engine(
            settings.DATABASE_URL,
            connect_args={"check_same_thread": False},
            echo=False,
        )

    connect_args = {}
    if settings.DB_STATEMENT_TIMEOUT_MS:
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"

    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        connect_args=connect_args,
        echo=False,  # Set to True for SQL query logging
    )


# Global engine instance
engine = create_db_engine()
