from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.catalog.config import settings

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def clamp(
        cls,
        page: int | None = None,
        limit: int | None = None,
        *,
        default_limit: int | None = None,
        max_limit: int | None = None,
    ) -> "PageRequest":
        """Normalise raw paging input: page >= 1 and 1 <= limit <= max."""

        default_limit = default_limit or settings.default_page_size
        max_limit = max_limit or settings.max_page_size
        page = max(1, page if page is not None else 1)
        limit = limit if limit is not None else default_limit
        return cls(page=page, limit=min(max_limit, max(1, limit)))

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class PageInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def compute(cls, request: PageRequest, total: int) -> "PageInfo":
        total_pages = math.ceil(total / request.limit) if total > 0 else 0
        return cls(
            page=request.page,
            limit=request.limit,
            total=total,
            total_pages=total_pages,
            has_next=request.page < total_pages,
            has_prev=request.page > 1,
        )


@dataclass
class Page(Generic[T]):
    items: List[T]
    info: PageInfo
