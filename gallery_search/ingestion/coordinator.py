from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Sequence

from gallery_search.errors import (
    BatchAbortedError,
    CleanupError,
    GalleryError,
    InvalidFileError,
    StoreUnavailableError,
)
from gallery_search.vectorstore.data_store import ImageVectorStore
from gallery_search.vectorstore.schemas import ImageRecord
from gallery_search.vision.provider import DescriptionEmbeddingProvider

from .schemas import BatchFailure, BatchResult, IngestedImage, UploadedFile
from .storage import TemporaryUploadStore
from .validation import guess_mime_type


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _failure(file: UploadedFile, exc: BaseException) -> BatchFailure:
    code = exc.code if isinstance(exc, GalleryError) else "PROCESSING_ERROR"
    return BatchFailure(
        filename=file.original_filename,
        error_message=str(exc) or type(exc).__name__,
        error_code=code,
    )


class UploadCoordinator:
    """Turns spooled uploads into stored image records.

    Files are processed strictly one after another, in input order, so the
    vision and embedding providers never see parallel requests from a single
    upload. Each file goes describe -> embed -> store, and its temporary file
    is removed afterwards whatever the outcome.
    """

    def __init__(
        self,
        provider: DescriptionEmbeddingProvider,
        store: ImageVectorStore,
        *,
        release: Callable[[Path], None] = TemporaryUploadStore.release,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.provider = provider
        self.store = store
        self._release_file = release
        self._clock = clock

    async def ingest_one(self, file: UploadedFile) -> IngestedImage:
        """Process a single upload; errors propagate instead of being collected."""
        try:
            return await self._process(file)
        finally:
            self._release(file)

    async def ingest(self, files: Sequence[UploadedFile]) -> BatchResult:
        """Process a batch, collecting per-file failures.

        Raises BatchAbortedError when the vector store becomes unreachable;
        the error carries the partial result and the filenames that were
        never attempted. Every temporary file is released either way.
        """
        files = list(files)
        if not files:
            raise InvalidFileError(
                "No files uploaded. Please upload at least one image.", code="NO_FILES"
            )

        logger.info("Processing batch of %d images", len(files))
        result = BatchResult()

        released = 0
        try:
            for index, file in enumerate(files):
                try:
                    image = await self._process(file)
                except StoreUnavailableError as exc:
                    result.failures.append(_failure(file, exc))
                    logger.error(
                        "Vector store unavailable; aborting batch after %d of %d files",
                        index + 1,
                        len(files),
                    )
                    raise BatchAbortedError(
                        f"Batch aborted: {exc}",
                        partial=result,
                        pending=[f.original_filename for f in files[index + 1 :]],
                    ) from exc
                except Exception as exc:
                    logger.error("Failed to process %s: %s", file.original_filename, exc)
                    result.failures.append(_failure(file, exc))
                else:
                    result.successes.append(image)
                finally:
                    self._release(file)
                    released += 1
        finally:
            # Aborted, failed or cancelled: nothing stays in the upload dir
            for file in files[released:]:
                self._release(file)

        logger.info(
            "Batch processing complete: %d successful, %d failed",
            result.total_processed,
            result.total_failed,
        )
        return result

    async def _process(self, file: UploadedFile) -> IngestedImage:
        logger.info("Processing uploaded image: %s", file.original_filename)

        image_bytes = await asyncio.to_thread(Path(file.path).read_bytes)
        mime_type = file.mime_type or guess_mime_type(file.original_filename)

        description = await self.provider.describe(image_bytes, mime_type)
        embedding = await self.provider.embed(description)

        record = ImageRecord(
            id=str(uuid.uuid4()),
            filename=file.original_filename,
            description=description,
            embedding=embedding,
            created_at=self._clock(),
        )
        record_id = await asyncio.to_thread(
            self.store.upsert, record.embedding, record.metadata(), id=record.id
        )

        logger.info("Successfully processed and stored: %s", file.original_filename)
        return IngestedImage(
            id=record_id,
            filename=record.filename,
            description=record.description,
            created_at=record.created_at,
        )

    def _release(self, file: UploadedFile) -> None:
        try:
            self._release_file(file.path)
        except CleanupError as exc:
            logger.warning("%s", exc)
        except OSError as exc:
            logger.warning("Error cleaning up file %s: %s", file.path, exc)


def summarize_failures(result: BatchResult) -> List[str]:
    return [f"{f.filename}: {f.error_message}" for f in result.failures]
