from __future__ import annotations

import logging
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.catalog.domain.errors import BackingStoreFailure, CatalogError, NotFoundError, ValidationError
from src.catalog.domain.models.guideline import Guideline, MedicalSpeciality
from src.catalog.infra.db.inmemory import guideline_repository
from src.catalog.infra.db.repositories import GuidelineRepository
from src.catalog.infra.storage.objects import ObjectStore, build_object_store
from src.catalog.security import Caller, Operation, authorize
from src.catalog.services.audit.service import audit_service
from src.catalog.services.catalog.content import ContentResolver
from src.catalog.services.catalog.pagination import Page, PageInfo, PageRequest
from src.catalog.services.catalog.query import GuidelineFilters, GuidelineQuery, build_query
from src.catalog.services.catalog.validation import FileUpload, parse_draft, parse_patch

logger = logging.getLogger(__name__)

# Fields an update may change directly; content is handled separately.
_PATCHABLE_FIELDS = ("title", "trust_name", "medical_speciality", "description", "tags", "is_active")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int
    trust_count: int
    trusts: list[str]
    by_speciality: Dict[str, int]


class GuidelineCatalogService:
    """Public operation set of the guideline catalog.

    Every operation consults :func:`authorize` first, then parses its input
    once into typed drafts/filters, then touches the repository. Writes are
    sequenced validate -> upload -> persist, so a failed upload never leaves
    a record behind.
    """

    def __init__(
        self,
        repository: GuidelineRepository,
        object_store: ObjectStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        max_upload_bytes: Optional[int] = None,
        accepted_media_type: Optional[str] = None,
    ) -> None:
        self.repository = repository
        self.content = ContentResolver(
            object_store,
            max_upload_bytes=max_upload_bytes,
            accepted_media_type=accepted_media_type,
        )
        self._clock = clock or _utcnow

    # Reads

    def list_guidelines(self, filters: GuidelineFilters, page: PageRequest, caller: Caller) -> Page[Guideline]:
        authorize(Operation.LIST, caller)
        result = self._page(build_query(filters), page)
        audit_service.log_event(
            action="list_guidelines",
            resource_type="guideline",
            extra={"page": page.page, "limit": page.limit, "total": result.info.total},
        )
        return result

    def search_guidelines(
        self,
        query: Optional[str],
        filters: GuidelineFilters,
        page: PageRequest,
        caller: Caller,
    ) -> Page[Guideline]:
        authorize(Operation.SEARCH, caller)
        if query is None or not query.strip():
            raise ValidationError("Search query is required")

        forced = filters.model_copy(update={"search": query.strip()})
        result = self._page(build_query(forced), page)
        audit_service.log_event(
            action="search_guidelines",
            resource_type="guideline",
            extra={"page": page.page, "limit": page.limit, "total": result.info.total},
        )
        return result

    def get_guideline(self, guideline_id: UUID, caller: Caller) -> Guideline:
        authorize(Operation.GET, caller)
        guideline = self._require(guideline_id)
        audit_service.log_event(action="get_guideline", resource_type="guideline", resource_id=str(guideline_id))
        return guideline

    def catalog_stats(self, caller: Caller) -> CatalogStats:
        """Counts shown on the dashboard: active guidelines, trusts, specialities."""

        authorize(Operation.STATS, caller)
        with self._backing_store("stats"):
            active, total = self.repository.search(GuidelineQuery(is_active=True))

        trusts = sorted({g.trust_name for g in active})
        by_speciality = Counter(g.medical_speciality.value for g in active)
        return CatalogStats(
            total=total,
            trust_count=len(trusts),
            trusts=trusts,
            by_speciality={s.value: by_speciality.get(s.value, 0) for s in MedicalSpeciality},
        )

    def fetch_file(self, guideline_id: UUID, caller: Caller) -> Tuple[Guideline, bytes]:
        authorize(Operation.FETCH_FILE, caller)
        guideline = self._require(guideline_id)
        data = self.content.fetch(guideline)
        audit_service.log_event(
            action="fetch_guideline_file",
            resource_type="guideline",
            resource_id=str(guideline_id),
            extra={"size_bytes": len(data)},
        )
        return guideline, data

    # Mutations

    def create_guideline(
        self,
        payload: Mapping[str, Any],
        caller: Caller,
        upload: Optional[FileUpload] = None,
    ) -> Guideline:
        authorize(Operation.CREATE, caller)
        draft = parse_draft(payload)
        source = self.content.resolve_new(draft.content, upload)

        now = self._clock()
        guideline = Guideline(
            id=uuid4(),
            trust_name=draft.trust_name,
            title=draft.title,
            description=draft.description,
            medical_speciality=draft.medical_speciality,
            source=source,
            tags=draft.tags,
            is_active=draft.is_active,
            created_by=caller.user_id,
            created_at=now,
            updated_at=now,
        )
        with self._backing_store("create"):
            self.repository.save(guideline)

        audit_service.log_event(
            action="create_guideline",
            resource_type="guideline",
            resource_id=str(guideline.id),
            extra={"file_type": guideline.file_type.value, "tag_count": len(guideline.tags)},
        )
        return guideline

    def update_guideline(
        self,
        guideline_id: UUID,
        payload: Mapping[str, Any],
        caller: Caller,
        upload: Optional[FileUpload] = None,
    ) -> Guideline:
        authorize(Operation.UPDATE, caller)
        existing = self._require(guideline_id)
        patch = parse_patch(payload)

        changes: Dict[str, Any] = {
            field: getattr(patch, field) for field in _PATCHABLE_FIELDS if patch.supplied(field)
        }
        changes["source"] = self.content.resolve_change(existing.source, patch.content, upload)
        changes["updated_by"] = caller.user_id
        changes["updated_at"] = self._advance(existing.updated_at)

        updated = existing.model_copy(update=changes)
        with self._backing_store("update"):
            self.repository.save(updated)

        audit_service.log_event(
            action="update_guideline",
            resource_type="guideline",
            resource_id=str(guideline_id),
            extra={
                "fields": sorted(k for k in changes if k in _PATCHABLE_FIELDS),
                "file_uploaded": upload is not None,
            },
        )
        return updated

    def delete_guideline(self, guideline_id: UUID, caller: Caller) -> None:
        authorize(Operation.DELETE, caller)
        with self._backing_store("delete"):
            removed = self.repository.delete(guideline_id)
        if not removed:
            raise NotFoundError()
        audit_service.log_event(action="delete_guideline", resource_type="guideline", resource_id=str(guideline_id))

    # Helpers

    def _page(self, query: GuidelineQuery, page: PageRequest) -> Page[Guideline]:
        with self._backing_store("query"):
            items, total = self.repository.search(query, skip=page.skip, limit=page.limit)
        return Page(items=items, info=PageInfo.compute(page, total))

    def _require(self, guideline_id: UUID) -> Guideline:
        with self._backing_store("get"):
            guideline = self.repository.get(guideline_id)
        if guideline is None:
            raise NotFoundError()
        return guideline

    def _advance(self, previous: datetime) -> datetime:
        # updated_at must move forward even if the clock has not.
        now = self._clock()
        if now <= previous:
            return previous + timedelta(microseconds=1)
        return now

    @contextmanager
    def _backing_store(self, operation: str) -> Iterator[None]:
        try:
            yield
        except CatalogError:
            raise
        except Exception as exc:
            logger.exception("Guideline store failed during %s", operation)
            raise BackingStoreFailure() from exc


catalog_service = GuidelineCatalogService(guideline_repository, build_object_store())
