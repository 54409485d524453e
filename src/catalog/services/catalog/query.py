from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.catalog.domain.models.guideline import Guideline, MedicalSpeciality
from src.catalog.services.catalog.text_search import TextQuery

# Trust filter value meaning "do not filter by trust".
ALL_TRUSTS = "all"


class SortOrder(str, Enum):
    RELEVANCE = "relevance"
    RECENTLY_UPDATED = "recently_updated"


def split_tags(value: object) -> List[str]:
    """Normalise a tag payload.

    A single string is treated as a comma-delimited list; a sequence is used
    as given. Entries are trimmed and blanks discarded in both cases.
    """

    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(item) for item in value]  # type: ignore[union-attr]
    return [item.strip() for item in items if item and item.strip()]


class GuidelineFilters(BaseModel):
    """Filter dimensions accepted by list and search."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    search: Optional[str] = None
    trust_name: Optional[str] = None
    medical_speciality: Optional[MedicalSpeciality] = None
    tags: List[str] = Field(default_factory=list)
    is_active: Optional[bool] = None

    @field_validator("search", "trust_name", "medical_speciality", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: object) -> List[str]:
        return split_tags(value)


@dataclass(frozen=True)
class GuidelineQuery:
    """A composed predicate plus the ordering it implies.

    Every populated dimension is ANDed; ``tags`` matches on any overlap.
    """

    is_active: bool = True
    trust_name: Optional[str] = None
    medical_speciality: Optional[MedicalSpeciality] = None
    tags: FrozenSet[str] = frozenset()
    text: Optional[TextQuery] = None

    @property
    def sort(self) -> SortOrder:
        # Relevance only applies under free-text search and is never mixed
        # with recency ordering.
        return SortOrder.RELEVANCE if self.text is not None else SortOrder.RECENTLY_UPDATED

    def admits(self, guideline: Guideline) -> bool:
        """Evaluate the structured dimensions (everything except text)."""

        if guideline.is_active != self.is_active:
            return False
        if self.trust_name is not None and guideline.trust_name != self.trust_name:
            return False
        if self.medical_speciality is not None and guideline.medical_speciality != self.medical_speciality:
            return False
        if self.tags and self.tags.isdisjoint(guideline.tags):
            return False
        return True


def build_query(filters: GuidelineFilters) -> GuidelineQuery:
    trust_name = filters.trust_name
    if trust_name is not None and trust_name == ALL_TRUSTS:
        trust_name = None

    text = TextQuery.parse(filters.search) if filters.search else None

    return GuidelineQuery(
        is_active=True if filters.is_active is None else filters.is_active,
        trust_name=trust_name,
        medical_speciality=filters.medical_speciality,
        tags=frozenset(filters.tags),
        text=text,
    )
