from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, TypeVar

from gallery_search.errors import (
    CollaboratorAuthError,
    CollaboratorBadRequestError,
    CollaboratorError,
    CollaboratorModelNotFoundError,
    CollaboratorRateLimitError,
    CollaboratorTimeoutError,
    GalleryError,
)
from gallery_search.vectorstore.embeddings import Embedder

from .describer import ImageDescriber


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def translate_provider_error(exc: BaseException, action: str) -> CollaboratorError:
    """Map an upstream SDK exception onto the collaborator error kinds.

    OpenAI-compatible SDKs expose the HTTP status as ``status_code``; the
    mapping only relies on that and on the exception type name for timeouts.
    """
    if isinstance(exc, TimeoutError) or "timeout" in type(exc).__name__.lower():
        return CollaboratorTimeoutError(f"{action} timed out")

    status = _status_code(exc)
    if status in (401, 403):
        return CollaboratorAuthError(
            f"{action} rejected: invalid API key or provider configuration"
        )
    if status == 429:
        return CollaboratorRateLimitError(
            f"{action} rate limit exceeded. Please try again later"
        )
    if status in (400, 413, 415, 422):
        return CollaboratorBadRequestError(f"{action} rejected the request: {exc}")
    if status == 404:
        return CollaboratorModelNotFoundError(
            f"{action} failed: model or deployment not found"
        )
    return CollaboratorError(f"{action} failed: {exc}")


class DescriptionEmbeddingProvider:
    """Describe images and embed text, with per-call timeouts.

    Every upstream failure surfaces as a CollaboratorError subclass; no call
    is retried here.
    """

    def __init__(
        self,
        describer: ImageDescriber,
        embedder: Embedder,
        *,
        timeout_sec: float = 30.0,
    ) -> None:
        self.describer = describer
        self.embedder = embedder
        self.timeout_sec = timeout_sec

    async def _call(self, awaitable: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_sec)
        except GalleryError:
            raise
        except Exception as exc:
            error = translate_provider_error(exc, action)
            logger.error("%s: %s", action, error)
            raise error from exc

    async def describe(self, image_bytes: bytes, mime_type: str) -> str:
        if not image_bytes:
            raise CollaboratorBadRequestError("Image description rejected: empty image")
        return await self._call(
            self.describer.describe(image_bytes, mime_type), "Image description"
        )

    async def embed(self, text: str) -> List[float]:
        logger.debug("Generating embedding for text: %s...", text[:50])
        vector = await self._call(self.embedder.aembed_query(text), "Text embedding")
        if not vector:
            raise CollaboratorError("Text embedding returned an empty vector")
        return vector
