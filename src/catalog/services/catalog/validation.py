from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from src.catalog.domain.errors import ValidationError
from src.catalog.domain.models.guideline import MedicalSpeciality
from src.catalog.services.catalog.query import GuidelineFilters, split_tags

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class FileUpload:
    """A binary attachment as received from the client."""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _strip_required(value: object) -> object:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
    return value


def _strip_optional(value: object) -> object:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def _split_tags(cls, value: object) -> List[str]:
        return split_tags(value)


class GuidelineDraft(_Payload):
    """Fields accepted when creating a guideline."""

    title: str
    trust_name: str
    medical_speciality: MedicalSpeciality
    description: Optional[str] = None
    content: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("title", "trust_name", mode="before")
    @classmethod
    def _required_text(cls, value: object) -> object:
        return _strip_required(value)

    @field_validator("description", mode="before")
    @classmethod
    def _optional_text(cls, value: object) -> object:
        return _strip_optional(value)

    @field_validator("content", mode="before")
    @classmethod
    def _blank_content(cls, value: object) -> object:
        # Blank content counts as "not supplied"; forms post empty strings
        # for untouched fields.
        if isinstance(value, str) and not value.strip():
            return None
        return value


class GuidelinePatch(_Payload):
    """Fields accepted when updating a guideline; all optional.

    ``model_fields_set`` tells which fields the caller actually supplied.
    """

    title: Optional[str] = None
    trust_name: Optional[str] = None
    medical_speciality: Optional[MedicalSpeciality] = None
    description: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("title", "trust_name", "medical_speciality", mode="before")
    @classmethod
    def _blank_means_unchanged(cls, value: object) -> object:
        # Blank required fields are left as they are rather than cleared.
        return _strip_optional(value)

    @field_validator("description", mode="before")
    @classmethod
    def _optional_text(cls, value: object) -> object:
        return _strip_optional(value)

    @field_validator("content", mode="before")
    @classmethod
    def _blank_content(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def supplied(self, field: str) -> bool:
        if field not in self.model_fields_set:
            return False
        # Explicit nulls only clear optional fields.
        if field in {"title", "trust_name", "medical_speciality", "is_active", "content"}:
            return getattr(self, field) is not None
        return True


def describe_errors(exc: Any) -> str:
    """Flatten pydantic (or FastAPI request) validation errors into one line."""

    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        msg = error.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def _parse(model: Type[M], raw: Mapping[str, Any]) -> M:
    try:
        return model.model_validate(dict(raw))
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc)) from exc


def parse_draft(raw: Mapping[str, Any]) -> GuidelineDraft:
    return _parse(GuidelineDraft, raw)


def parse_patch(raw: Mapping[str, Any]) -> GuidelinePatch:
    return _parse(GuidelinePatch, raw)


def parse_filters(raw: Mapping[str, Any]) -> GuidelineFilters:
    return _parse(GuidelineFilters, raw)
