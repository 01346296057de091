from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gallery_search.bootstrap import Services, build_services
from gallery_search.errors import BatchAbortedError, GalleryError

from .routers.query import router as query_router
from .routers.upload import batch_to_model
from .routers.upload import router as upload_router
from .routers.vectorstore import router as vectorstore_router


# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


"""
FastAPI application

Note on OpenAPI/Swagger docs:
Some recent combinations of FastAPI/Starlette serve the OpenAPI schema with
the vendor media type "application/vnd.oai.openapi+json". In certain client
environments (or with strict Accept headers), this can cause a 406 Not
Acceptable when the Swagger UI tries to fetch /openapi.json.

To avoid that, we disable the auto-registered OpenAPI/docs routes and add
explicit JSONResponse-based endpoints for the schema and Swagger UI.
"""


def _base_path() -> str:
    """Optional base path for deployments under a subpath (e.g. /gallery).

    Used as the ASGI root_path and advertised via OpenAPI "servers" so that
    Swagger UI "Try it out" sends requests to the correct prefixed URLs.
    """
    base_path = os.getenv("API_BASE_PATH", "").strip()
    if base_path and not base_path.startswith("/"):
        base_path = "/" + base_path
    if base_path.endswith("/") and base_path != "/":
        base_path = base_path.rstrip("/")
    return base_path


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    data: Optional[Any] = None,
) -> JSONResponse:
    body = {
        "success": False,
        "message": message,
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
    }
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body)


def create_app(services_factory: Callable[[], Services] = build_services) -> FastAPI:
    """Build the API.

    ``services_factory`` runs once in the lifespan, before the first request,
    so request handlers never initialize anything themselves.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services_factory()
        app.state.started_at = time.monotonic()
        yield

    base_path = _base_path()

    # Disable built-in docs/openapi routes; we'll provide explicit JSON-based ones
    app = FastAPI(
        title="Gallery Search API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        root_path=base_path or "",
    )

    # CORS: allow the mobile/web clients hosted on other origins to call this API.
    cors_origin = os.getenv("CORS_ORIGIN", "*")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in cors_origin.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Mount routers
    app.include_router(upload_router)
    app.include_router(query_router)
    app.include_router(vectorstore_router)

    @app.exception_handler(BatchAbortedError)
    async def batch_aborted_handler(request: Request, exc: BatchAbortedError):
        logger.error("Batch upload aborted: %s", exc)
        partial = batch_to_model(exc.partial, exc.pending)
        return _error_response(
            request,
            exc.status_code,
            exc.message,
            exc.code,
            data=partial.model_dump(mode="json", by_alias=True),
        )

    @app.exception_handler(GalleryError)
    async def gallery_error_handler(request: Request, exc: GalleryError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return _error_response(request, exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(
            request, 400, f"Invalid request: {exc.errors()}", "VALIDATION_ERROR"
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(
                request, 404, f"Route {request.url.path} not found", "NOT_FOUND"
            )
        return _error_response(request, exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(request, 500, "Internal server error", "INTERNAL_ERROR")

    @app.get("/", tags=["ops"], summary="API information")
    async def root():
        return {
            "success": True,
            "message": "Gallery Search Backend API",
            "version": app.version,
            "endpoints": {
                "POST /api/upload": "Upload single or multiple images",
                "POST /api/query": "Search images by text query",
                "GET /api/stats": "Get database statistics",
                "GET /api/health": "Health check endpoint",
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def _with_servers(path: str | None):
        """Return OpenAPI schema optionally annotated with servers -> [{url: path}]."""
        schema = app.openapi()
        if path and path != "/":
            # Copy-on-write: FastAPI caches app.openapi()
            schema = {**schema, "servers": [{"url": path}]}
        return schema

    # Explicit OpenAPI JSON (forces application/json, avoids 406 with strict Accept)
    @app.get("/openapi.json", include_in_schema=False)
    def openapi_json():
        return JSONResponse(_with_servers(base_path or None))

    # Relative openapi_url so it works when served under a subpath behind a proxy.
    @app.get("/docs", include_in_schema=False)
    def swagger_ui():
        return get_swagger_ui_html(openapi_url="openapi.json", title="Gallery Search API Docs")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "gallery_search.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
