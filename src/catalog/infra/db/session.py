from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

SessionFactory = Callable[[], Session]


def create_engine_for(database_url: str) -> Engine:
    """Create an engine, sharing a single connection for in-memory SQLite.

    Each new connection to ``sqlite://`` would otherwise open an empty
    database, losing the tables created at bootstrap.
    """

    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url)


def create_sqlalchemy_session_factory(engine: Engine) -> SessionFactory:
    """Build a factory producing short-lived SQLAlchemy sessions."""

    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:
        return SessionLocal()

    return _factory
