from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel

from src.catalog.domain.models.guideline import Guideline
from src.catalog.services.catalog.pagination import Page


def dump(model: BaseModel) -> Dict[str, Any]:
    """JSON-ready dict using the camelCase wire names."""
    return model.model_dump(mode="json", by_alias=True)


def ok(data: Any = None, *, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def fail(error: str, *, retryable: bool = False) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error}
    if retryable:
        body["retryable"] = True
    return body


def guideline_page(page: Page[Guideline]) -> Dict[str, Any]:
    return {
        "data": [dump(g) for g in page.items],
        "pagination": dump(page.info),
    }
