from __future__ import annotations

import asyncio
import platform
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import Field

from gallery_search.api.dependencies import get_services
from gallery_search.api.schemas import CamelModel
from gallery_search.bootstrap import Services


router = APIRouter(prefix="/api", tags=["vectorstore"])


class CollectionStatsInfo(CamelModel):
    collection_name: str = Field(..., description="Collection name")
    total_points: int = Field(..., description="Number of stored image records")
    vector_size: Optional[int] = Field(None, description="Embedding dimension")
    distance: Optional[str] = Field(None, description="Similarity metric of the index")
    status: str = Field(..., description="Collection load state")


class StatsResponse(CamelModel):
    success: bool = True
    message: str
    data: CollectionStatsInfo


class HealthInfo(CamelModel):
    status: str = "healthy"
    timestamp: datetime
    uptime: float = Field(..., description="Seconds since the app started")
    version: str = Field(..., description="Python version")
    environment: str


class HealthResponse(CamelModel):
    success: bool = True
    message: str
    data: HealthInfo


@router.get(
    "/stats",
    summary="Vector store collection statistics",
    response_model=StatsResponse,
)
async def get_database_stats(services: Services = Depends(get_services)) -> StatsResponse:
    stats = await asyncio.to_thread(services.store.collection_stats)
    return StatsResponse(
        message="Database statistics retrieved successfully",
        data=CollectionStatsInfo(
            collection_name=stats.collection_name,
            total_points=stats.count,
            vector_size=stats.dimension,
            distance=stats.distance_metric,
            status=stats.status,
        ),
    )


@router.get("/health", summary="Health check", response_model=HealthResponse)
async def health_check(
    request: Request, services: Services = Depends(get_services)
) -> HealthResponse:
    started_at = getattr(request.app.state, "started_at", None) or time.monotonic()
    return HealthResponse(
        message="Service is healthy",
        data=HealthInfo(
            timestamp=datetime.now(timezone.utc),
            uptime=round(time.monotonic() - started_at, 3),
            version=platform.python_version(),
            environment=services.config.environment,
        ),
    )
