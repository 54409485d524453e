from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile

from src.catalog.api.dependencies import get_catalog_service, get_page_request
from src.catalog.api.schemas import dump, guideline_page, ok
from src.catalog.domain.errors import NotFoundError, ValidationError
from src.catalog.security import Caller, Operation, authorize, get_caller
from src.catalog.services.catalog.pagination import PageRequest
from src.catalog.services.catalog.service import GuidelineCatalogService
from src.catalog.services.catalog.validation import FileUpload, parse_filters

router = APIRouter(prefix="/guidelines", tags=["guidelines"])

_FILTER_PARAMS = ("search", "trustName", "medicalSpeciality", "isActive")
_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _filters_from(request: Request) -> Dict[str, Any]:
    params = request.query_params
    raw: Dict[str, Any] = {name: params[name] for name in _FILTER_PARAMS if name in params}
    # One value is a comma-delimited list; repeated values are taken verbatim.
    tags = params.getlist("tags")
    if tags:
        raw["tags"] = tags if len(tags) > 1 else tags[0]
    return raw


def content_disposition(filename: str, disposition: str = "inline") -> str:
    """Build a latin-1 safe Content-Disposition header value.

    Non-ASCII names get an RFC 5987 ``filename*`` parameter next to an ASCII
    fallback; quotes and backslashes never reach the quoted ``filename``.
    """

    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    header = f'{disposition}; filename="{fallback}"'
    quoted = quote(filename)
    if quoted != filename:
        header += f"; filename*=utf-8''{quoted}"
    return header


def _parse_id(raw: str) -> UUID:
    # A malformed id cannot name an existing guideline.
    try:
        return UUID(raw)
    except ValueError as exc:
        raise NotFoundError() from exc


async def _read_body(request: Request) -> Tuple[Dict[str, Any], Optional[FileUpload]]:
    """Accept either a JSON document or a form post carrying an optional file."""

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

    if content_type in _FORM_TYPES:
        form = await request.form()
        raw: Dict[str, Any] = {}
        upload: Optional[FileUpload] = None
        for name in set(form.keys()):
            if name == "file":
                value = form.get("file")
                if isinstance(value, UploadFile):
                    data = await value.read()
                    if value.filename or data:
                        upload = FileUpload(
                            filename=value.filename or "document.pdf",
                            content_type=value.content_type,
                            data=data,
                        )
                continue
            values = [v for v in form.getlist(name) if isinstance(v, str)]
            if not values:
                continue
            raw[name] = values if name == "tags" and len(values) > 1 else values[0]
        return raw, upload

    body = await request.body()
    if not body.strip():
        return {}, None
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Malformed JSON body") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload, None


@router.get("")
async def list_guidelines(
    request: Request,
    page: PageRequest = Depends(get_page_request),
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> dict:
    filters = parse_filters(_filters_from(request))
    result = service.list_guidelines(filters, page, caller)
    return ok(guideline_page(result))


@router.get("/search")
async def search_guidelines(
    request: Request,
    q: Optional[str] = None,
    page: PageRequest = Depends(get_page_request),
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> dict:
    filters = parse_filters(_filters_from(request))
    result = service.search_guidelines(q, filters, page, caller)
    body = guideline_page(result)
    body["query"] = (q or "").strip()
    return ok(body)


@router.get("/stats")
async def guideline_stats(
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> dict:
    """Dashboard counts: active guidelines, trusts and specialities."""
    return ok(dump(service.catalog_stats(caller)))


@router.get("/{guideline_id}")
async def get_guideline(
    guideline_id: str,
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> dict:
    return ok(dump(service.get_guideline(_parse_id(guideline_id), caller)))


@router.get("/{guideline_id}/file")
async def get_guideline_file(
    guideline_id: str,
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> Response:
    """Stream back the PDF stored for a file-backed guideline."""

    guideline, data = service.fetch_file(_parse_id(guideline_id), caller)
    filename = (guideline.source.key or "").rsplit("/", 1)[-1] or f"{guideline.id}.pdf"  # type: ignore[union-attr]
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_guideline(
    request: Request,
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> JSONResponse:
    # Reject unauthorised callers before touching the request body.
    authorize(Operation.CREATE, caller)
    raw, upload = await _read_body(request)
    guideline = service.create_guideline(raw, caller, upload=upload)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=ok(dump(guideline), message="Guideline created successfully"),
    )


@router.put("/{guideline_id}")
async def update_guideline(
    guideline_id: str,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> dict:
    authorize(Operation.UPDATE, caller)
    target = _parse_id(guideline_id)
    raw, upload = await _read_body(request)
    guideline = service.update_guideline(target, raw, caller, upload=upload)
    return ok(dump(guideline), message="Guideline updated successfully")


@router.delete("/{guideline_id}")
async def delete_guideline(
    guideline_id: str,
    caller: Caller = Depends(get_caller),
    service: GuidelineCatalogService = Depends(get_catalog_service),
) -> dict:
    authorize(Operation.DELETE, caller)
    service.delete_guideline(_parse_id(guideline_id), caller)
    return ok(message="Guideline deleted successfully")
