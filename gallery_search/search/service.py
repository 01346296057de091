from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from gallery_search.errors import InvalidQueryError
from gallery_search.utils.text_cleaning import normalize_query, query_terms
from gallery_search.vectorstore.data_store import ImageVectorStore
from gallery_search.vectorstore.schemas import StoreHit
from gallery_search.vision.provider import DescriptionEmbeddingProvider

from .schemas import SearchResponse, SearchResult


logger = logging.getLogger(__name__)

DEFAULT_SUGGESTION_TERMS = ("landscape", "people", "nature", "city", "sunset", "ocean")


@dataclass(frozen=True)
class SearchCoordinatorConfig:
    default_limit: int = 10
    min_limit: int = 1
    max_limit: int = 50
    default_score_threshold: float = 0.7
    max_suggestions: int = 5
    suggestion_terms: Sequence[str] = DEFAULT_SUGGESTION_TERMS


def clamp_limit(value: Any, config: SearchCoordinatorConfig) -> int:
    """Coerce ``value`` to an int within [min_limit, max_limit].

    None and non-numeric values select the default.
    """
    if value is None:
        return config.default_limit
    try:
        limit = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return config.default_limit
    return min(max(limit, config.min_limit), config.max_limit)


def clamp_score_threshold(value: Any, config: SearchCoordinatorConfig) -> float:
    """Coerce ``value`` to a float within [0, 1]; None and garbage select the default."""
    if value is None:
        return config.default_score_threshold
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        return config.default_score_threshold
    if threshold != threshold:  # NaN
        return config.default_score_threshold
    return min(max(threshold, 0.0), 1.0)


def generate_suggestions(
    query: str,
    terms: Sequence[str] = DEFAULT_SUGGESTION_TERMS,
    max_suggestions: int = 5,
) -> List[str]:
    """Fallback queries for a search that matched nothing.

    Broad category terms come first, then the query's own longer words;
    duplicates are dropped (first occurrence wins) and the list is capped.
    """
    seen = set()
    suggestions: List[str] = []
    for term in [*terms, *query_terms(query)]:
        if term in seen:
            continue
        seen.add(term)
        suggestions.append(term)
    return suggestions[:max_suggestions]


class SearchCoordinator:
    """Application-layer image search.

    Embeds the query text once, asks the vector store for the nearest
    descriptions and, when nothing clears the score threshold, answers with
    heuristic suggestions instead of a second model call.
    """

    def __init__(
        self,
        provider: DescriptionEmbeddingProvider,
        store: ImageVectorStore,
        config: Optional[SearchCoordinatorConfig] = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.config = config or SearchCoordinatorConfig()

    async def search(
        self,
        query_text: Any,
        limit: Any = None,
        score_threshold: Any = None,
    ) -> SearchResponse:
        query = normalize_query(query_text)
        if not query:
            raise InvalidQueryError("Query text is required and must be a non-empty string")

        limit = clamp_limit(limit, self.config)
        score_threshold = clamp_score_threshold(score_threshold, self.config)
        logger.info(
            "Searching for images with query: %r (limit=%d, threshold=%.2f)",
            query,
            limit,
            score_threshold,
        )

        vector = await self.provider.embed(query)
        hits = await asyncio.to_thread(self.store.query, vector, limit, score_threshold)

        results = [self._to_result(h) for h in hits if h.score >= score_threshold]
        results.sort(key=lambda r: r.score, reverse=True)
        results = results[:limit]

        response = SearchResponse(
            query=query,
            limit=limit,
            score_threshold=score_threshold,
            results=results,
        )
        if not results:
            response.suggestions = generate_suggestions(
                query,
                self.config.suggestion_terms,
                self.config.max_suggestions,
            )
        logger.info("Search completed: found %d matching images", response.total_found)
        return response

    def _to_result(self, hit: StoreHit) -> SearchResult:
        metadata = hit.metadata or {}
        return SearchResult(
            id=str(hit.id),
            filename=str(metadata.get("filename") or ""),
            description=str(metadata.get("description") or ""),
            created_at=metadata.get("created_at"),
            score=hit.score,
        )
