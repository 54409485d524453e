from fastapi import APIRouter, Depends

from src.catalog.api.dependencies import get_catalog_service
from src.catalog.config import settings
from src.catalog.infra.db.sql_guidelines import SqlGuidelineRepository
from src.catalog.services.catalog.service import GuidelineCatalogService

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/storage")
async def storage_info_v1(service: GuidelineCatalogService = Depends(get_catalog_service)) -> dict:
    """Which backends the catalog is currently wired to (no credentials)."""

    repository = "sql" if isinstance(service.repository, SqlGuidelineRepository) else "memory"
    return {
        "status": "ok",
        "repository": repository,
        "objectStore": settings.object_store_backend.lower(),
    }
