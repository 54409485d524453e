from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from uuid import UUID

from src.catalog.domain.models.guideline import Guideline
from src.catalog.services.catalog.query import GuidelineQuery


class GuidelineRepository(ABC):
    @abstractmethod
    def get(self, guideline_id: UUID) -> Optional[Guideline]:
        raise NotImplementedError

    @abstractmethod
    def search(
        self,
        query: GuidelineQuery,
        *,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Guideline], int]:
        """Return one ordered window of matches and the total match count.

        Ordering follows ``query.sort``. ``limit=None`` returns everything
        from ``skip`` onwards.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, guideline: Guideline) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, guideline_id: UUID) -> bool:
        """Remove a guideline; return False when it did not exist."""
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError
