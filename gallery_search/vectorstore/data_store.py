import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import grpc
from pymilvus import DataType, MilvusClient
from pymilvus.client.types import Status
from pymilvus.exceptions import (
    ConnectionNotExistException,
    MilvusException,
    MilvusUnavailableException,
)

from gallery_search.errors import StoreError, StoreUnavailableError

from .embeddings import Embedder
from .milvus_client import get_milvus_client
from .schemas import CollectionStats, StoreHit


logger = logging.getLogger(__name__)

# Codes pymilvus attaches when the server cannot be reached or never answers
UNAVAILABLE_CODES = frozenset(
    {grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.DEADLINE_EXCEEDED, Status.CONNECT_FAILED}
)

VECTOR_FIELD = "embedding"
VECTOR_INDEX = "embedding_index"
METRIC_TYPE = "COSINE"
METADATA_FIELDS = ["filename", "description", "created_at"]


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    """Re-raise pymilvus failures as store errors.

    Connectivity problems become StoreUnavailableError, anything else the
    server rejects becomes StoreError. pymilvus reports a dead server as a
    plain MilvusException (its retry decorator re-raises the gRPC status),
    so the error code decides, not the exception type.
    """
    try:
        yield
    except ConnectionError as e:
        raise StoreUnavailableError(f"Vector store unavailable during {action}: {e}") from e
    except MilvusException as e:
        if is_unavailable(e):
            raise StoreUnavailableError(
                f"Vector store unavailable during {action}: {e}"
            ) from e
        raise StoreError(f"Vector store {action} failed: {e}") from e


def is_unavailable(e: MilvusException) -> bool:
    if isinstance(e, (MilvusUnavailableException, ConnectionNotExistException)):
        return True
    return getattr(e, "code", None) in UNAVAILABLE_CODES


class CollectionManager:
    """Manages Milvus collection lifecycle and schema for image description vectors."""

    def __init__(
        self, client: MilvusClient, name: str = "gallery_images", *, embedder: Embedder
    ) -> None:
        self.client = client
        self.name = name
        self.embedder = embedder

    def ensure_collection(self) -> None:
        with translate_store_errors("collection setup"):
            if self.client.has_collection(self.name):
                return

            logger.info(
                "Creating collection '%s' (dim=%s, metric=%s)",
                self.name,
                self.embedder.dim,
                METRIC_TYPE,
            )
            schema = MilvusClient.create_schema(auto_id=False)
            # Use string UUIDs (36 chars with dashes) as primary key
            schema.add_field(
                field_name="id", datatype=DataType.VARCHAR, max_length=36, is_primary=True
            )
            # The uploader's filename is metadata only, never a path
            schema.add_field(
                field_name="filename", datatype=DataType.VARCHAR, max_length=512
            )
            schema.add_field(
                field_name="description", datatype=DataType.VARCHAR, max_length=8000
            )
            schema.add_field(
                field_name="created_at", datatype=DataType.VARCHAR, max_length=64
            )
            schema.add_field(
                field_name=VECTOR_FIELD,
                datatype=DataType.FLOAT_VECTOR,
                dim=self.embedder.dim,
            )

            index_params = self.client.prepare_index_params()
            index_params.add_index(
                field_name=VECTOR_FIELD,
                index_name=VECTOR_INDEX,
                index_type="AUTOINDEX",
                metric_type=METRIC_TYPE,
            )

            self.client.create_collection(
                collection_name=self.name, schema=schema, index_params=index_params
            )

    def drop_collection(self) -> None:
        with translate_store_errors("collection drop"):
            if self.client.has_collection(self.name):
                logger.info("Dropping collection '%s'.", self.name)
                self.client.drop_collection(collection_name=self.name)
                logger.info("Collection dropped successfully.")

    def reset_collection(self) -> None:
        self.drop_collection()
        self.ensure_collection()


class ImageVectorStore:
    """Write/search/stats operations; delegates lifecycle to a CollectionManager.

    The collection is not created lazily: call ``manager.ensure_collection()``
    once during process bootstrap before serving requests.
    """

    def __init__(
        self,
        client: Optional[MilvusClient] = None,
        collection: str = "gallery_images",
        manager: Optional[CollectionManager] = None,
        embedder: Optional[Embedder] = None,
        *,
        timeout: Optional[float] = None,
        stats_timeout: Optional[float] = None,
    ) -> None:
        self.client = client or get_milvus_client()
        self.collection = collection
        self.embedder = embedder or Embedder()
        self.manager = manager or CollectionManager(
            self.client, name=self.collection, embedder=self.embedder
        )
        self.timeout = timeout
        self.stats_timeout = stats_timeout or timeout

    def _check_vector(self, vector: List[float], label: str) -> None:
        expected_dim = self.embedder.dim
        if not vector:
            raise ValueError(f"{label} is empty")
        if len(vector) != expected_dim:
            raise ValueError(
                f"{label} has dim {len(vector)} but collection expects {expected_dim}"
            )

    def upsert(
        self,
        vector: List[float],
        metadata: Dict[str, Any],
        *,
        id: Optional[str] = None,
    ) -> str:
        """Store one vector with its metadata and return the record id."""
        self._check_vector(vector, "vector")
        description = metadata.get("description")
        if not description or not str(description).strip():
            raise ValueError("metadata must include a non-empty 'description'")

        record_id = id or str(uuid.uuid4())
        row = {
            "id": record_id,
            "filename": str(metadata.get("filename") or ""),
            "description": str(description),
            "created_at": str(metadata.get("created_at") or ""),
            VECTOR_FIELD: list(vector),
        }
        with translate_store_errors("upsert"):
            self.client.upsert(
                collection_name=self.collection, data=[row], timeout=self.timeout
            )
        logger.debug("Stored record %s in '%s'", record_id, self.collection)
        return record_id

    def query(
        self,
        vector: List[float],
        limit: int = 10,
        score_threshold: float = 0.0,
    ) -> List[StoreHit]:
        """Return up to ``limit`` hits with score >= score_threshold, best first.

        The top ``limit`` neighbours are fetched and then filtered, which is
        equivalent to thresholding first because results arrive ranked.
        """
        self._check_vector(vector, "query vector")
        with translate_store_errors("search"):
            results = self.client.search(
                collection_name=self.collection,
                data=[vector],
                anns_field=VECTOR_FIELD,
                limit=limit,
                output_fields=METADATA_FIELDS,
                search_params={"metric_type": METRIC_TYPE},
                timeout=self.timeout,
            )
        hits = [h for h in self._results_to_hits(results) if h.score >= score_threshold]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits

    def collection_stats(self) -> CollectionStats:
        with translate_store_errors("stats"):
            stats = self.client.get_collection_stats(
                collection_name=self.collection, timeout=self.stats_timeout
            )
            description = self.client.describe_collection(
                collection_name=self.collection, timeout=self.stats_timeout
            )
            try:
                index = self.client.describe_index(
                    collection_name=self.collection,
                    index_name=VECTOR_INDEX,
                    timeout=self.stats_timeout,
                )
            except MilvusException:
                logger.warning("Index '%s' not found on '%s'", VECTOR_INDEX, self.collection)
                index = {}
            load_state = self.client.get_load_state(
                collection_name=self.collection, timeout=self.stats_timeout
            )

        dimension: Optional[int] = None
        for f in description.get("fields", []):
            if f.get("name") == VECTOR_FIELD:
                dim = (f.get("params") or {}).get("dim")
                dimension = int(dim) if dim is not None else None

        state = load_state.get("state") if isinstance(load_state, dict) else load_state
        status = getattr(state, "name", None) or str(state)

        return CollectionStats(
            collection_name=self.collection,
            count=int(stats.get("row_count", 0)),
            dimension=dimension,
            distance_metric=(index or {}).get("metric_type"),
            status=status,
        )

    @staticmethod
    def _hit_value(hit, key: str, default=None):
        if isinstance(hit, dict):
            return hit.get(key, default)
        return getattr(hit, key, default)

    def _results_to_hits(self, results) -> List[StoreHit]:
        """Convert Milvus search results for a single query into StoreHits."""
        if not results:
            return []
        hits: List[StoreHit] = []
        for hit in results[0]:
            entity = self._hit_value(hit, "entity") or {}
            if not isinstance(entity, dict):
                entity = dict(entity)
            distance = self._hit_value(hit, "distance")
            try:
                score = float(distance) if distance is not None else 0.0
            except (TypeError, ValueError):
                score = 0.0
            # Cosine similarity is in [-1, 1]; callers expect [0, 1]
            score = max(0.0, min(1.0, score))
            metadata = {k: entity.get(k) for k in METADATA_FIELDS if k in entity}
            hits.append(
                StoreHit(id=str(self._hit_value(hit, "id", "")), score=score, metadata=metadata)
            )
        return hits
