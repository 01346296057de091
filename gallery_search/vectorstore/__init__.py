"""Vector storage layer: Milvus collection, embeddings wrapper and record types."""

from .data_store import CollectionManager, ImageVectorStore
from .embeddings import Embedder
from .schemas import CollectionStats, ImageRecord, StoreHit

__all__ = [
    "CollectionManager",
    "CollectionStats",
    "Embedder",
    "ImageRecord",
    "ImageVectorStore",
    "StoreHit",
]
