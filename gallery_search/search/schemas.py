from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class SearchResult:
    id: str
    filename: str
    description: str
    created_at: Optional[str]
    score: float


@dataclass
class SearchResponse:
    query: str
    limit: int
    score_threshold: float
    results: List[SearchResult] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def total_found(self) -> int:
        return len(self.results)
