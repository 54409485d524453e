from __future__ import annotations

from fastapi import status


class CatalogError(Exception):
    """Base class for failures surfaced to catalog callers.

    Each subclass carries the HTTP status it maps to so the API layer can
    render a uniform error envelope without inspecting the exception type.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False
    default_message: str = "Service failure"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CatalogError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(CatalogError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or missing credentials"


class AuthorizationError(CatalogError):
    # Never include resource details in the message.
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Admin access required"


class NotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Guideline not found"


class StorageFailure(CatalogError):
    """The object store rejected or failed an upload or download.

    Nothing is persisted when this is raised during a write, so callers may
    simply resubmit.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_message = "Failed to upload file"


class BackingStoreFailure(CatalogError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Service failure"
