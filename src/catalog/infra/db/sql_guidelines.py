from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import ColumnElement, Select, false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from src.catalog.domain.errors import BackingStoreFailure
from src.catalog.domain.models.guideline import Guideline
from src.catalog.infra.db.models import GuidelineORM, GuidelineTagORM
from src.catalog.infra.db.repositories import GuidelineRepository
from src.catalog.infra.db.session import SessionFactory
from src.catalog.services.catalog.query import GuidelineQuery
from src.catalog.services.catalog.text_search import TextQuery, rank

logger = logging.getLogger(__name__)


class SqlGuidelineRepository(GuidelineRepository):
    """SQL-backed GuidelineRepository.

    Structured filters, counting, ordering and windowing run in the database.
    Free-text search narrows candidates with a substring prefilter and then
    ranks them with the same scorer the in-memory store uses, so both stores
    agree on matches and ordering.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, guideline_id: UUID) -> Optional[Guideline]:
        try:
            with self._session_factory() as session:
                orm = session.get(GuidelineORM, guideline_id)
                return orm.to_domain() if orm is not None else None
        except SQLAlchemyError as exc:
            logger.exception("Failed to load guideline %s", guideline_id)
            raise BackingStoreFailure() from exc

    def search(
        self,
        query: GuidelineQuery,
        *,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Guideline], int]:
        stmt = self._filtered(query)
        try:
            with self._session_factory() as session:
                if query.text is None:
                    total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
                    # Past the last row; an out-of-range OFFSET overflows SQLite's INTEGER.
                    if skip >= total:
                        return [], total
                    ordered = stmt.order_by(GuidelineORM.updated_at.desc(), GuidelineORM.id.asc()).offset(skip)
                    if limit is not None:
                        ordered = ordered.limit(limit)
                    return [orm.to_domain() for orm in session.scalars(ordered).all()], total

                candidates = [
                    orm.to_domain() for orm in session.scalars(stmt.where(_text_prefilter(query.text))).all()
                ]
        except SQLAlchemyError as exc:
            logger.exception("Guideline search failed")
            raise BackingStoreFailure() from exc

        ranked = [g for g, _score in rank(candidates, query.text)]
        end = None if limit is None else skip + limit
        return ranked[skip:end], len(ranked)

    def save(self, guideline: Guideline) -> None:
        """Insert or update a Guideline in the database."""

        try:
            with self._session_factory() as session:
                existing = session.get(GuidelineORM, guideline.id)
                if existing is None:
                    session.add(GuidelineORM.from_domain(guideline))
                else:
                    existing.apply(guideline)
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to save guideline %s", guideline.id)
            raise BackingStoreFailure() from exc

    def delete(self, guideline_id: UUID) -> bool:
        try:
            with self._session_factory() as session:
                existing = session.get(GuidelineORM, guideline_id)
                if existing is None:
                    return False
                session.delete(existing)
                session.commit()
                return True
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete guideline %s", guideline_id)
            raise BackingStoreFailure() from exc

    def count(self) -> int:
        try:
            with self._session_factory() as session:
                return session.scalar(select(func.count()).select_from(GuidelineORM)) or 0
        except SQLAlchemyError as exc:
            raise BackingStoreFailure() from exc

    @staticmethod
    def _filtered(query: GuidelineQuery) -> Select:
        stmt = select(GuidelineORM).where(GuidelineORM.is_active == query.is_active)
        if query.trust_name is not None:
            stmt = stmt.where(GuidelineORM.trust_name == query.trust_name)
        if query.medical_speciality is not None:
            stmt = stmt.where(GuidelineORM.medical_speciality == query.medical_speciality.value)
        if query.tags:
            stmt = stmt.where(GuidelineORM.tags.any(GuidelineTagORM.tag.in_(sorted(query.tags))))
        return stmt


def _text_prefilter(text: TextQuery) -> ColumnElement[bool]:
    # Stems are prefixes of the words they came from, so a case-insensitive
    # substring test never drops a document the scorer would keep.
    if text.is_empty:
        return false()
    clauses: List[ColumnElement[bool]] = []
    for term in text.terms:
        pattern = f"%{term}%"
        clauses.extend(
            [
                GuidelineORM.title.ilike(pattern),
                GuidelineORM.description.ilike(pattern),
                GuidelineORM.content.ilike(pattern),
                GuidelineORM.trust_name.ilike(pattern),
                GuidelineORM.tags.any(GuidelineTagORM.tag.ilike(pattern)),
            ]
        )
    return or_(*clauses)
