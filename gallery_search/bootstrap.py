"""One-time process setup.

Everything that used to be initialized lazily on the first request (model
clients, the Milvus collection, the uploads directory) is built here, once,
before the HTTP app starts accepting traffic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from gallery_search.config import AppConfig, get_config
from gallery_search.ingestion import TemporaryUploadStore, UploadCoordinator
from gallery_search.search import SearchCoordinator, SearchCoordinatorConfig
from gallery_search.vectorstore import Embedder, ImageVectorStore
from gallery_search.vectorstore.milvus_client import get_milvus_client
from gallery_search.vision import DescriptionEmbeddingProvider, ImageDescriber


logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    uploads: TemporaryUploadStore
    store: ImageVectorStore
    upload_coordinator: UploadCoordinator
    search_coordinator: SearchCoordinator


def search_config_from(config: AppConfig) -> SearchCoordinatorConfig:
    return SearchCoordinatorConfig(
        default_limit=config.search.default_limit,
        max_limit=config.search.max_limit,
        default_score_threshold=config.search.default_score_threshold,
        max_suggestions=config.search.max_suggestions,
        suggestion_terms=config.search.suggestion_terms,
    )


def build_services(config: Optional[AppConfig] = None) -> Services:
    """Create model adapters, connect to Milvus and make sure the collection exists."""
    config = config or get_config()
    logger.info("Initializing application services...")

    # Share the same embedder between store and provider to guarantee dim consistency.
    embedder = Embedder(config=config.raw)
    describer = ImageDescriber(config=config.raw)
    provider = DescriptionEmbeddingProvider(
        describer, embedder, timeout_sec=config.timeouts.generation_sec
    )

    client = get_milvus_client(config.milvus, timeout=config.timeouts.store_sec)
    store = ImageVectorStore(
        client=client,
        collection=config.milvus.collection,
        embedder=embedder,
        timeout=config.timeouts.store_sec,
        stats_timeout=config.timeouts.stats_sec,
    )
    store.manager.ensure_collection()

    uploads = TemporaryUploadStore(config.upload.dir)
    uploads.ensure_dir()

    services = Services(
        config=config,
        uploads=uploads,
        store=store,
        upload_coordinator=UploadCoordinator(provider, store, release=uploads.release),
        search_coordinator=SearchCoordinator(provider, store, search_config_from(config)),
    )
    logger.info("All services initialized successfully")
    return services
