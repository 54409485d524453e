from __future__ import annotations

from threading import Lock
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from src.catalog.domain.models.guideline import Guideline
from src.catalog.infra.db.repositories import GuidelineRepository
from src.catalog.services.catalog.query import GuidelineQuery
from src.catalog.services.catalog.text_search import rank


class InMemoryGuidelineRepository(GuidelineRepository):
    """Dict-backed guideline store used for local development and tests.

    Records are copied on the way in and out so callers can never mutate the
    stored state behind the repository's back.
    """

    def __init__(self) -> None:
        self._guidelines: Dict[UUID, Guideline] = {}
        self._lock = Lock()

    def get(self, guideline_id: UUID) -> Optional[Guideline]:
        with self._lock:
            found = self._guidelines.get(guideline_id)
        return found.model_copy(deep=True) if found is not None else None

    def search(
        self,
        query: GuidelineQuery,
        *,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Guideline], int]:
        with self._lock:
            candidates = [g for g in self._guidelines.values() if query.admits(g)]

        if query.text is not None:
            ordered = [g for g, _score in rank(candidates, query.text)]
        else:
            # Two stable sorts: id ascending, then updated_at descending.
            ordered = sorted(candidates, key=lambda g: str(g.id))
            ordered.sort(key=lambda g: g.updated_at, reverse=True)

        end = None if limit is None else skip + limit
        window = ordered[skip:end]
        return [g.model_copy(deep=True) for g in window], len(ordered)

    def save(self, guideline: Guideline) -> None:
        with self._lock:
            self._guidelines[guideline.id] = guideline.model_copy(deep=True)

    def delete(self, guideline_id: UUID) -> bool:
        with self._lock:
            return self._guidelines.pop(guideline_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._guidelines)


guideline_repository: GuidelineRepository = InMemoryGuidelineRepository()
