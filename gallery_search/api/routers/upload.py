from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import Field
from starlette.datastructures import UploadFile as StarletteUploadFile

from gallery_search.api.dependencies import get_services
from gallery_search.api.schemas import CamelModel, ErrorResponse
from gallery_search.bootstrap import Services
from gallery_search.errors import InvalidFileError
from gallery_search.ingestion import (
    BatchResult,
    IngestedImage,
    UploadedFile,
    validate_uploaded_file,
)
from gallery_search.ingestion.validation import file_too_large


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["upload"])

UPLOAD_FIELDS = ("image", "images")


class UploadedImage(CamelModel):
    id: str = Field(..., description="Primary key of the stored image record.")
    filename: str = Field(..., description="Filename supplied by the uploader.")
    description: str = Field(..., description="Generated image description.")
    timestamp: datetime = Field(..., description="When the image was processed.")


class UploadFailure(CamelModel):
    filename: str = Field(..., description="Filename supplied by the uploader.")
    error: str = Field(..., description="Why the image could not be processed.")
    code: str = Field(..., description="Machine-readable error code.")


class BatchUploadData(CamelModel):
    successful: List[UploadedImage] = Field(default_factory=list)
    failed: List[UploadFailure] = Field(default_factory=list)
    total_processed: int = Field(0, description="Number of images stored.")
    total_failed: int = Field(0, description="Number of images that failed.")
    pending: List[str] = Field(
        default_factory=list,
        description="Files never attempted because the batch was aborted.",
    )


class SingleUploadResponse(CamelModel):
    success: bool = True
    message: str
    data: UploadedImage


class BatchUploadResponse(CamelModel):
    success: bool = True
    message: str
    data: BatchUploadData


def image_to_model(image: IngestedImage) -> UploadedImage:
    return UploadedImage(
        id=image.id,
        filename=image.filename,
        description=image.description,
        timestamp=image.created_at,
    )


def batch_to_model(result: BatchResult, pending: List[str] | None = None) -> BatchUploadData:
    return BatchUploadData(
        successful=[image_to_model(i) for i in result.successes],
        failed=[
            UploadFailure(filename=f.filename, error=f.error_message, code=f.error_code)
            for f in result.failures
        ],
        total_processed=result.total_processed,
        total_failed=result.total_failed,
        pending=list(pending or []),
    )


async def receive_uploads(request: Request, services: Services) -> List[UploadedFile]:
    """Spool multipart uploads to the temporary upload directory and validate them.

    On any rejection every file spooled so far is removed before the error
    propagates.
    """
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        raise InvalidFileError(
            "Content-Type must be multipart/form-data for file uploads.",
            code="INVALID_CONTENT_TYPE",
        )

    upload_cfg = services.config.upload
    spooled: List[UploadedFile] = []
    form = await request.form()
    try:
        candidates = []
        for field_name, value in form.multi_items():
            if not isinstance(value, StarletteUploadFile):
                continue
            if field_name not in UPLOAD_FIELDS:
                raise InvalidFileError(
                    'Unexpected file field. Use "image" for single upload or "images" for batch upload.',
                    code="UNEXPECTED_FIELD",
                )
            candidates.append((field_name, value))

        if not candidates:
            raise InvalidFileError(
                "No files uploaded. Please upload at least one image.", code="NO_FILES"
            )
        if len(candidates) > upload_cfg.max_files:
            raise InvalidFileError(
                f"Too many files. Maximum {upload_cfg.max_files} files per upload.",
                code="TOO_MANY_FILES",
            )

        for _, value in candidates:
            if value.size is not None and value.size > upload_cfg.max_file_size:
                raise file_too_large(value.filename or "", upload_cfg.max_file_size)

        for field_name, value in candidates:
            spooled.append(
                await asyncio.to_thread(
                    services.uploads.save,
                    value.file,
                    value.filename or "",
                    field_name=field_name,
                    content_type=value.content_type,
                    max_size=upload_cfg.max_file_size,
                )
            )

        for file in spooled:
            validate_uploaded_file(
                file,
                max_size=upload_cfg.max_file_size,
                allowed_types=upload_cfg.allowed_mime_types,
            )
    except Exception:
        services.uploads.release_all(spooled)
        raise
    finally:
        await form.close()

    return spooled


@router.post(
    "/upload",
    summary="Upload one or more images",
    responses={
        200: {"model": SingleUploadResponse},
        207: {"model": BatchUploadResponse, "description": "Some images failed"},
        400: {"model": ErrorResponse, "description": "Upload rejected"},
        503: {"model": ErrorResponse, "description": "Vector store unavailable"},
    },
)
async def upload_images(
    request: Request, services: Services = Depends(get_services)
) -> JSONResponse:
    """Describe, embed and store uploaded images.

    Send one file as ``image`` or up to ten as ``images``. A single file
    answers with the stored image; several files answer with a batch report
    (HTTP 207 when some of them failed).
    """
    files = await receive_uploads(request, services)
    logger.info("Received %d file(s) for processing", len(files))

    if len(files) == 1:
        image = await services.upload_coordinator.ingest_one(files[0])
        body = SingleUploadResponse(
            message="Image uploaded and processed successfully",
            data=image_to_model(image),
        )
        return JSONResponse(status_code=200, content=body.model_dump(mode="json", by_alias=True))

    result = await services.upload_coordinator.ingest(files)
    body = BatchUploadResponse(
        message=(
            f"Batch upload completed: {result.total_processed} successful, "
            f"{result.total_failed} failed"
        ),
        data=batch_to_model(result),
    )
    status_code = 207 if result.total_failed > 0 else 200
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))
