"""Search application layer.

Free-text image search on top of the vector store: query normalization,
parameter clamping, ranked results and fallback suggestions when nothing
matches.
"""

from .schemas import SearchResponse, SearchResult
from .service import (
    SearchCoordinator,
    SearchCoordinatorConfig,
    clamp_limit,
    clamp_score_threshold,
    generate_suggestions,
)

__all__ = [
    "SearchCoordinator",
    "SearchCoordinatorConfig",
    "SearchResponse",
    "SearchResult",
    "clamp_limit",
    "clamp_score_threshold",
    "generate_suggestions",
]
