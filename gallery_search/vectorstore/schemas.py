from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ImageRecord:
    id: str
    filename: str
    description: str
    embedding: List[float]
    created_at: datetime

    def metadata(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class StoreHit:
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str:
        return str(self.metadata.get("description") or "")


@dataclass(frozen=True)
class CollectionStats:
    collection_name: str
    count: int
    dimension: Optional[int]
    distance_metric: Optional[str]
    status: str
