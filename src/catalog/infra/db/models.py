from __future__ import annotations

from datetime import datetime, timezone
from typing import List
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GuidelineORM(Base):
    __tablename__ = "guidelines"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    trust_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    medical_speciality: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # "pdf" rows carry url (and usually storage_key); "text" rows carry content.
    file_type: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str | None] = mapped_column(String, nullable=True)
    storage_key: Mapped[str | None] = mapped_column(String, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_by: Mapped[str] = mapped_column(String, nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    tags: Mapped[List["GuidelineTagORM"]] = relationship(
        back_populates="guideline",
        cascade="all, delete-orphan",
        order_by="GuidelineTagORM.position",
        lazy="selectin",
    )

    @classmethod
    def from_domain(cls, guideline: "Guideline") -> "GuidelineORM":  # type: ignore[name-defined]
        orm = cls(id=guideline.id)
        orm.apply(guideline)
        return orm

    def apply(self, guideline: "Guideline") -> None:  # type: ignore[name-defined]
        """Copy every mutable field from the domain model onto this row."""

        from src.catalog.domain.models.guideline import RemoteContent

        self.trust_name = guideline.trust_name
        self.title = guideline.title
        self.description = guideline.description
        self.medical_speciality = guideline.medical_speciality.value
        self.file_type = guideline.file_type.value
        if isinstance(guideline.source, RemoteContent):
            self.url = guideline.source.url
            self.storage_key = guideline.source.key
            self.content = None
        else:
            self.url = None
            self.storage_key = None
            self.content = guideline.source.text
        self.is_active = guideline.is_active
        self.created_by = guideline.created_by
        self.updated_by = guideline.updated_by
        self.created_at = guideline.created_at
        self.updated_at = guideline.updated_at
        self.tags = [GuidelineTagORM(position=i, tag=tag) for i, tag in enumerate(guideline.tags)]

    def to_domain(self) -> "Guideline":  # type: ignore[name-defined]
        from src.catalog.domain.models.guideline import (
            FileType,
            Guideline,
            InlineContent,
            MedicalSpeciality,
            RemoteContent,
        )

        if FileType(self.file_type) == FileType.PDF:
            source = RemoteContent(url=self.url or "", key=self.storage_key)
        else:
            source = InlineContent(text=self.content or "")

        return Guideline(
            id=self.id,
            trust_name=self.trust_name,
            title=self.title,
            description=self.description,
            medical_speciality=MedicalSpeciality(self.medical_speciality),
            source=source,
            tags=[t.tag for t in self.tags],
            is_active=self.is_active,
            created_by=self.created_by,
            updated_by=self.updated_by,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class GuidelineTagORM(Base):
    __tablename__ = "guideline_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guideline_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("guidelines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    tag: Mapped[str] = mapped_column(String, nullable=False, index=True)

    guideline: Mapped[GuidelineORM] = relationship(back_populates="tags")
