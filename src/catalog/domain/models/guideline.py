from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class MedicalSpeciality(str, Enum):
    CARDIOLOGY = "cardiology"
    RESPIRATORY = "respiratory"
    NEUROLOGY = "neurology"
    ONCOLOGY = "oncology"
    PEDIATRICS = "pediatrics"
    EMERGENCY = "emergency"
    SURGERY = "surgery"
    PSYCHIATRY = "psychiatry"
    DERMATOLOGY = "dermatology"
    ORTHOPEDICS = "orthopedics"
    RADIOLOGY = "radiology"
    PATHOLOGY = "pathology"
    ANESTHESIOLOGY = "anesthesiology"
    GENERAL_MEDICINE = "general_medicine"
    OTHER = "other"

    @property
    def label(self) -> str:
        """Display name, e.g. ``general_medicine`` -> ``General Medicine``."""
        return self.value.replace("_", " ").title()


class FileType(str, Enum):
    PDF = "pdf"
    TEXT = "text"


class InlineContent(BaseModel):
    """Guideline text stored directly on the record."""

    kind: Literal["text"] = "text"
    text: str = Field(min_length=1)


class RemoteContent(BaseModel):
    """Reference to a document held by the object store."""

    kind: Literal["pdf"] = "pdf"
    url: str = Field(min_length=1)
    # Object-store key the document was written under; used to fetch the
    # bytes back. Older records imported from elsewhere may only carry a URL.
    key: Optional[str] = None


GuidelineContent = Annotated[Union[InlineContent, RemoteContent], Field(discriminator="kind")]


class Guideline(BaseModel):
    """A clinical guideline contributed by a trust.

    Content is a tagged variant so a record can never hold both a URL and
    inline text. The flat ``fileType``/``url``/``content`` fields clients see
    are derived from it at serialization time.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    trust_name: str
    title: str
    description: Optional[str] = None
    medical_speciality: MedicalSpeciality
    source: GuidelineContent = Field(exclude=True)
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_by: str
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @computed_field(alias="fileType")  # type: ignore[misc]
    @property
    def file_type(self) -> FileType:
        return FileType.PDF if isinstance(self.source, RemoteContent) else FileType.TEXT

    @computed_field(alias="url")  # type: ignore[misc]
    @property
    def url(self) -> Optional[str]:
        if isinstance(self.source, RemoteContent):
            return self.source.url
        return None

    @computed_field(alias="content")  # type: ignore[misc]
    @property
    def content(self) -> Optional[str]:
        if isinstance(self.source, InlineContent):
            return self.source.text
        return None

    @computed_field(alias="formattedSpeciality")  # type: ignore[misc]
    @property
    def formatted_speciality(self) -> str:
        return self.medical_speciality.label
