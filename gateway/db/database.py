"""Database connection and session management."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from gateway.core.config import settings

# Base class for models
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Default engine and session factory from settings
engine = build_engine(settings.database_url, echo=settings.debug)
SessionLocal = build_session_factory(engine)


def init_db(bind: Optional[Engine] = None):
    """Initialize database (create tables)."""
    from gateway.db import models  # noqa: F401  register models
    Base.metadata.create_all(bind=bind or engine)
