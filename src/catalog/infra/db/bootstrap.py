from __future__ import annotations

import logging
from typing import Optional

from src.catalog.config import settings
from src.catalog.infra.db.models import Base
from src.catalog.infra.db.session import create_engine_for, create_sqlalchemy_session_factory
from src.catalog.infra.db.sql_guidelines import SqlGuidelineRepository

logger = logging.getLogger(__name__)


def build_sql_repository(database_url: str) -> SqlGuidelineRepository:
    """Create the schema (if missing) and return a repository bound to it."""

    engine = create_engine_for(database_url)

    # Create tables if they do not exist. A real deployment would run
    # migrations instead.
    Base.metadata.create_all(engine)

    return SqlGuidelineRepository(create_sqlalchemy_session_factory(engine))


def init_sql_repositories(database_url: Optional[str] = None, *, force: bool = False) -> bool:
    """Optionally switch the catalog from the in-memory store to SQL.

    When USE_SQL_REPOS is not enabled (and ``force`` is not set) or no
    DATABASE_URL is configured, this is a no-op and the in-memory repository
    remains active. Returns whether the swap happened.
    """

    if not (settings.use_sql_repos or force):
        return False

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; keeping in-memory store")
        return False

    from src.catalog.services.catalog.service import catalog_service

    # Swap the repository on the shared service so existing references to
    # catalog_service now read and write through the database.
    catalog_service.repository = build_sql_repository(db_url)
    logger.info("Guideline catalog using SQL repository")
    return True
