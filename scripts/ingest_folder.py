"""Bulk-ingest a local folder of images through the upload pipeline.

Each image is copied into the temporary upload directory first (the pipeline
deletes what it processes), validated, then ingested in batches of
MAX_BATCH files, sequentially.

    python scripts/ingest_folder.py ./photos
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import List

from gallery_search.bootstrap import build_services
from gallery_search.errors import BatchAbortedError, InvalidFileError
from gallery_search.ingestion import UploadedFile, guess_mime_type, validate_uploaded_file
from gallery_search.ingestion.coordinator import summarize_failures


IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}
MAX_BATCH: int = 10
LOG_LEVEL: str = "INFO"

logger = logging.getLogger(__name__)


def _collect(folder: Path) -> List[Path]:
    return sorted(p for p in folder.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)


async def ingest_folder(folder: Path) -> int:
    services = build_services()
    upload_cfg = services.config.upload
    paths = _collect(folder)
    logger.info("Found %d images in %s", len(paths), folder)

    stored = failed = 0
    for start in range(0, len(paths), MAX_BATCH):
        batch: List[UploadedFile] = []
        for path in paths[start : start + MAX_BATCH]:
            with path.open("rb") as fh:
                spooled = services.uploads.save(
                    fh, path.name, content_type=guess_mime_type(path.name)
                )
            try:
                validate_uploaded_file(
                    spooled,
                    max_size=upload_cfg.max_file_size,
                    allowed_types=upload_cfg.allowed_mime_types,
                )
            except InvalidFileError as e:
                logger.warning("Skipping %s: %s", path.name, e)
                services.uploads.release_all([spooled])
                failed += 1
                continue
            batch.append(spooled)

        if not batch:
            continue
        try:
            result = await services.upload_coordinator.ingest(batch)
        except BatchAbortedError as e:
            logger.error("%s; %d files never attempted", e, len(e.pending))
            stored += e.partial.total_processed
            failed += e.partial.total_failed + len(e.pending)
            break
        stored += result.total_processed
        failed += result.total_failed
        for line in summarize_failures(result):
            logger.warning("Failed: %s", line)

    logger.info("Ingestion finished: %d stored, %d failed", stored, failed)
    return 0 if failed == 0 else 2


def main() -> int:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    if len(sys.argv) != 2 or not Path(sys.argv[1]).is_dir():
        print("usage: python scripts/ingest_folder.py <image-folder>")
        return 1
    try:
        return asyncio.run(ingest_folder(Path(sys.argv[1])))
    except Exception as e:  # pragma: no cover
        logging.exception("Ingestion failed: %s", e)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
