"""Image ingestion: upload validation, temporary storage and the upload pipeline."""

from .coordinator import UploadCoordinator
from .schemas import BatchFailure, BatchResult, IngestedImage, UploadedFile
from .storage import TemporaryUploadStore
from .validation import guess_mime_type, validate_uploaded_file

__all__ = [
    "BatchFailure",
    "BatchResult",
    "IngestedImage",
    "TemporaryUploadStore",
    "UploadCoordinator",
    "UploadedFile",
    "guess_mime_type",
    "validate_uploaded_file",
]
