from __future__ import annotations

import logging
import secrets
import time
from pathlib import Path, PurePath
from typing import BinaryIO, Iterable, Optional

from gallery_search.errors import CleanupError

from .schemas import UploadedFile
from .validation import file_too_large, guess_mime_type

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class TemporaryUploadStore:
    """Spools uploads to disk until the ingestion pipeline has processed them.

    Files are named ``<field>-<epoch ms>-<random><ext>``; the client filename
    contributes its extension and nothing else.
    """

    def __init__(self, upload_dir: Path | str) -> None:
        self.upload_dir = Path(upload_dir)

    def ensure_dir(self) -> None:
        if not self.upload_dir.exists():
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created uploads directory %s", self.upload_dir)

    def _temp_path(self, original_filename: str, field_name: str) -> Path:
        extension = PurePath(original_filename or "").suffix.lower()
        if not extension.isascii() or len(extension) > 10:
            extension = ""
        unique = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
        return self.upload_dir / f"{field_name}-{unique}{extension}"

    def save(
        self,
        stream: BinaryIO,
        original_filename: str,
        *,
        field_name: str = "images",
        content_type: Optional[str] = None,
        max_size: Optional[int] = None,
    ) -> UploadedFile:
        """Copy ``stream`` into a fresh temporary file.

        With ``max_size`` set, copying stops at the first chunk that crosses the
        limit; the partial file is removed and InvalidFileError is raised.
        """
        self.ensure_dir()
        path = self._temp_path(original_filename, field_name)
        size = 0
        try:
            with path.open("wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_size is not None and size > max_size:
                        raise file_too_large(original_filename or path.name, max_size)
                    out.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        logger.debug("Spooled %s (%d bytes) to %s", original_filename, size, path)
        return UploadedFile(
            path=path,
            original_filename=original_filename or path.name,
            mime_type=content_type or guess_mime_type(original_filename),
            size=size,
        )

    @staticmethod
    def release(path: Path | str) -> None:
        """Delete a temporary file if it still exists."""
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            raise CleanupError(f"Error cleaning up file {path}: {e}") from e
        logger.debug("Cleaned up temporary file: %s", path)

    def release_all(self, files: Iterable[UploadedFile]) -> None:
        for file in files:
            try:
                self.release(file.path)
            except CleanupError as e:
                logger.warning("%s", e)
