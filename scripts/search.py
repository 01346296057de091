"""Image search script using the SearchCoordinator.

Configuration via constants below (no CLI args). Run:
    python scripts/search.py

Environment:
    OPENAI_API_KEY  (embedding + vision)
    MILVUS_URI      (default http://localhost:19530)
    MILVUS_TOKEN    (default root:Milvus)
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from gallery_search.bootstrap import build_services
from gallery_search.search import SearchResponse


# ---------------------------------------------------------------------------
# Configuration Constants
# ---------------------------------------------------------------------------
QUERY_TEXT: str = "sunset over mountains"
LIMIT: int = 5
SCORE_THRESHOLD: float = 0.7
LOG_LEVEL: str = "INFO"


async def search(query: str, limit: int = LIMIT, threshold: float = SCORE_THRESHOLD) -> SearchResponse:
    """Run one search and log an aggregated multi-line block with the results."""
    logger = logging.getLogger(__name__)

    services = build_services()
    response = await services.search_coordinator.search(query, limit, threshold)

    header = (
        f"Returned {response.total_found} results "
        f"(limit={response.limit}, threshold={response.score_threshold}).\n"
        f"Query: {response.query!r}\n"
    )
    lines: List[str] = [header]
    for idx, result in enumerate(response.results, start=1):
        lines.append(f"{idx}. score={result.score:.4f} file={result.filename} id={result.id}")
        lines.append(f"    {result.description[:160]}")
    if response.suggestions:
        lines.append(f"No matches. Try: {', '.join(response.suggestions)}")
    logger.info("\n".join(lines))
    return response


def main() -> int:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    try:
        asyncio.run(search(QUERY_TEXT, LIMIT, SCORE_THRESHOLD))
        return 0
    except Exception as e:  # pragma: no cover
        logging.exception("Search failed: %s", e)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
