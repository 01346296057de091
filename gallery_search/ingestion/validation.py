from __future__ import annotations

from pathlib import PurePath
from typing import Iterable, Optional

from gallery_search.errors import InvalidFileError

from .schemas import UploadedFile

MAX_FILE_SIZE = 10 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/bmp"}
)

_EXTENSION_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}


def guess_mime_type(filename: str) -> str:
    """MIME type from the file extension; unknown extensions are treated as JPEG."""
    return _EXTENSION_MIME_TYPES.get(PurePath(filename or "").suffix.lower(), "image/jpeg")


def file_too_large(filename: str, max_size: int) -> InvalidFileError:
    limit_mb = max_size / (1024 * 1024)
    return InvalidFileError(
        f"File {filename!r} is too large. Maximum size is {limit_mb:g}MB",
        code="FILE_TOO_LARGE",
    )


def validate_uploaded_file(
    file: Optional[UploadedFile],
    *,
    max_size: int = MAX_FILE_SIZE,
    allowed_types: Iterable[str] = ALLOWED_MIME_TYPES,
) -> UploadedFile:
    """Reject missing, empty, oversized or non-image uploads with InvalidFileError."""
    if file is None:
        raise InvalidFileError("No file uploaded", code="NO_FILES")

    if file.size <= 0:
        raise InvalidFileError(f"Uploaded file {file.original_filename!r} is empty")

    if file.size > max_size:
        raise file_too_large(file.original_filename, max_size)

    mime_type = (file.mime_type or "").lower()
    if mime_type not in set(allowed_types):
        raise InvalidFileError(
            f"Invalid file type: {file.mime_type or 'unknown'}. "
            "Only JPEG, PNG, GIF, WebP, and BMP images are allowed."
        )

    return file
