"""Dependencies injected into the catalog route handlers.

Tests replace these through ``app.dependency_overrides`` to run against
a fresh service.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Query

from src.catalog.services.catalog.pagination import PageRequest
from src.catalog.services.catalog.service import GuidelineCatalogService, catalog_service


def get_catalog_service() -> GuidelineCatalogService:
    """Return the process-wide catalog service."""
    return catalog_service


def get_page_request(
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
) -> PageRequest:
    """Lenient paging: unparseable or out-of-range values are clamped."""
    return PageRequest.clamp(_as_int(page), _as_int(limit))


def _as_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
