from __future__ import annotations

import itertools
import logging
import time
from pathlib import PurePosixPath
from typing import Optional

from src.catalog.config import settings
from src.catalog.domain.errors import CatalogError, NotFoundError, StorageFailure, ValidationError
from src.catalog.domain.models.guideline import (
    Guideline,
    GuidelineContent,
    InlineContent,
    RemoteContent,
)
from src.catalog.infra.storage.objects import ObjectStore
from src.catalog.services.catalog.validation import FileUpload

logger = logging.getLogger(__name__)

KEY_PREFIX = "guidelines"

_sequence = itertools.count()


def storage_key_for(filename: str) -> str:
    """Derive a unique object key that keeps the original file name.

    The prefix is the current time in milliseconds plus a per-process
    sequence number, so keys sort by upload order and never collide within
    a process.
    """

    name = PurePosixPath(filename.replace("\\", "/")).name.strip() or "document.pdf"
    name = "-".join(name.split())
    return f"{KEY_PREFIX}/{int(time.time() * 1000)}-{next(_sequence):06d}-{name}"


class ContentResolver:
    """Decides whether a guideline carries inline text or a stored file.

    Uploads complete before a record is written: callers persist only after
    :meth:`resolve_new` / :meth:`resolve_change` return, so a failed upload
    never leaves a guideline pointing at missing content.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        *,
        max_upload_bytes: Optional[int] = None,
        accepted_media_type: Optional[str] = None,
    ) -> None:
        self.object_store = object_store
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes
        self.accepted_media_type = accepted_media_type or settings.accepted_upload_type

    def check_upload(self, upload: FileUpload) -> None:
        media_type = (upload.content_type or "").split(";")[0].strip().lower()
        if media_type != self.accepted_media_type:
            raise ValidationError("Only PDF files are allowed")
        if upload.size == 0:
            raise ValidationError("Uploaded file is empty")
        if upload.size > self.max_upload_bytes:
            raise ValidationError(f"File exceeds the maximum size of {self.max_upload_bytes} bytes")

    def upload(self, upload: FileUpload) -> RemoteContent:
        self.check_upload(upload)
        key = storage_key_for(upload.filename)
        try:
            url = self.object_store.put(upload.data, key, content_type=self.accepted_media_type)
        except CatalogError:
            raise
        except Exception as exc:
            logger.exception("Object store failed while uploading %s", key)
            raise StorageFailure() from exc
        if not url:
            raise StorageFailure()
        logger.info("Uploaded guideline document %s (%d bytes)", key, upload.size)
        return RemoteContent(url=url, key=key)

    def resolve_new(self, text: Optional[str], upload: Optional[FileUpload]) -> GuidelineContent:
        if upload is not None and text:
            raise ValidationError("Provide either a file or content, not both")
        if upload is not None:
            return self.upload(upload)
        if text:
            return InlineContent(text=text)
        raise ValidationError("Either file or content is required")

    def resolve_change(
        self,
        current: GuidelineContent,
        text: Optional[str],
        upload: Optional[FileUpload],
    ) -> GuidelineContent:
        """Content after an update; unchanged when neither text nor file is given."""

        if upload is None and not text:
            return current
        return self.resolve_new(text, upload)

    def fetch(self, guideline: Guideline) -> bytes:
        source = guideline.source
        if not isinstance(source, RemoteContent) or not source.key:
            raise NotFoundError("No stored file for this guideline")
        return self.object_store.get(source.key)
