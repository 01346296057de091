from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class UploadedFile:
    """A spooled upload waiting to be processed.

    ``path`` is the server-side temporary file, ``original_filename`` is what
    the client sent and is only ever used as metadata.
    """

    path: Path
    original_filename: str
    mime_type: Optional[str] = None
    size: int = 0


@dataclass(frozen=True)
class IngestedImage:
    id: str
    filename: str
    description: str
    created_at: datetime


@dataclass(frozen=True)
class BatchFailure:
    filename: str
    error_message: str
    error_code: str = "PROCESSING_ERROR"


@dataclass
class BatchResult:
    successes: List[IngestedImage] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.successes)

    @property
    def total_failed(self) -> int:
        return len(self.failures)

    @property
    def input_count(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures
