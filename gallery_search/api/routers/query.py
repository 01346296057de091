from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from gallery_search.api.dependencies import get_services
from gallery_search.api.schemas import CamelModel, ErrorResponse
from gallery_search.bootstrap import Services
from gallery_search.search import SearchResponse


router = APIRouter(prefix="/api", tags=["search"])


class QueryRequest(CamelModel):
    # Loosely typed on purpose: bad values are clamped or rejected by the
    # search layer with its own error codes rather than a 422.
    query: Optional[Any] = Field(None, description="Natural-language search query.")
    limit: Optional[Any] = Field(
        None, description="Maximum number of results (1-50, default 10)."
    )
    score_threshold: Optional[Any] = Field(
        None, description="Minimum similarity score (0-1, default 0.7)."
    )


class SearchResultItem(CamelModel):
    id: str = Field(..., description="Primary key of the matched image record.")
    filename: str = Field(..., description="Filename supplied by the uploader.")
    description: str = Field(..., description="Stored image description.")
    timestamp: Optional[str] = Field(None, description="When the image was processed.")
    score: float = Field(..., description="Similarity score in [0, 1].")


class SearchParams(CamelModel):
    limit: int
    score_threshold: float


class SearchData(CamelModel):
    query: str = Field(..., description="Normalized query text.")
    results: List[SearchResultItem] = Field(default_factory=list)
    suggestions: List[str] = Field(
        default_factory=list, description="Alternative queries when nothing matched."
    )
    total_found: int = 0
    search_params: SearchParams


class QueryResponse(CamelModel):
    success: bool = True
    message: str
    data: SearchData


def response_to_model(response: SearchResponse) -> SearchData:
    return SearchData(
        query=response.query,
        results=[
            SearchResultItem(
                id=r.id,
                filename=r.filename,
                description=r.description,
                timestamp=r.created_at,
                score=r.score,
            )
            for r in response.results
        ],
        suggestions=list(response.suggestions),
        total_found=response.total_found,
        search_params=SearchParams(
            limit=response.limit, score_threshold=response.score_threshold
        ),
    )


@router.post(
    "/query",
    summary="Semantic image search by query",
    response_model=QueryResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def query_images(
    request: QueryRequest, services: Services = Depends(get_services)
) -> QueryResponse:
    """Search stored images by natural-language description."""

    response = await services.search_coordinator.search(
        request.query,
        limit=request.limit,
        score_threshold=request.score_threshold,
    )
    return QueryResponse(
        message=f"Found {response.total_found} matching images",
        data=response_to_model(response),
    )
