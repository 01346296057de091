"""Exception types shared by the ingestion and search layers.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, so request handlers never have to guess from messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from gallery_search.ingestion.schemas import BatchResult


class GalleryError(Exception):
    """Base error for the gallery backend."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidFileError(GalleryError):
    """Upload rejected before processing (missing, too large, wrong type)."""

    code = "INVALID_FILE"
    status_code = 400


class InvalidQueryError(GalleryError):
    code = "INVALID_QUERY"
    status_code = 400


class CollaboratorError(GalleryError):
    """An external model or store call failed."""

    code = "PROVIDER_ERROR"
    status_code = 502


class CollaboratorAuthError(CollaboratorError):
    code = "PROVIDER_AUTH_ERROR"
    status_code = 502


class CollaboratorRateLimitError(CollaboratorError):
    code = "PROVIDER_RATE_LIMITED"
    status_code = 429


class CollaboratorBadRequestError(CollaboratorError):
    code = "PROVIDER_BAD_REQUEST"
    status_code = 502


class CollaboratorModelNotFoundError(CollaboratorError):
    code = "PROVIDER_MODEL_NOT_FOUND"
    status_code = 502


class CollaboratorTimeoutError(CollaboratorError):
    code = "PROVIDER_TIMEOUT"
    status_code = 504


class StoreError(CollaboratorError):
    code = "STORE_ERROR"
    status_code = 502


class StoreUnavailableError(StoreError):
    """Vector store unreachable; no further progress is possible."""

    code = "STORE_UNAVAILABLE"
    status_code = 503


class BatchAbortedError(StoreUnavailableError):
    """A batch stopped on a store outage.

    ``partial`` holds everything completed (and failed) before the fault,
    ``pending`` the filenames that were never attempted.
    """

    def __init__(
        self,
        message: str,
        *,
        partial: "BatchResult",
        pending: List[str],
    ) -> None:
        super().__init__(message)
        self.partial = partial
        self.pending = pending


class CleanupError(GalleryError):
    """Temporary file removal failed. Logged, never raised to callers."""

    code = "CLEANUP_ERROR"
