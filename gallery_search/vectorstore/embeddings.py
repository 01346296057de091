import asyncio
import logging
from functools import cached_property
from typing import Any, Dict, List, Optional

from langchain.embeddings import init_embeddings

from gallery_search.config import CONFIG_FILE_PATH, load_config


logger = logging.getLogger(__name__)


class Embedder:
    """Generic embedding wrapper backed by LangChain's init_embeddings.

    Credentials are read from environment as required by the chosen provider
    (e.g., OPENAI_API_KEY, AZURE_OPENAI_API_KEY, etc.).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        provider: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        embeddings: Any = None,
    ) -> None:
        # Start from explicit config dict if provided, else load the packaged config.yaml
        if config is not None:
            cfg: Dict[str, Any] = dict(config)
        else:
            try:
                cfg = load_config(CONFIG_FILE_PATH)
            except FileNotFoundError:
                cfg = {}

        embedding_cfg = dict(cfg.get("embedding_model") or {}) if isinstance(cfg, dict) else {}

        # Override with explicit args if provided
        if provider is not None:
            embedding_cfg["provider"] = provider
        if model is not None:
            embedding_cfg["model"] = model

        self._cfg = cfg
        if self._cfg.get("dim"):
            logger.info(
                "Using configured embedding dimension: %s", self._cfg.get("dim")
            )
            self.__dict__["dim"] = int(self._cfg.get("dim"))

        if embeddings is not None:
            # Pre-built LangChain embeddings object (tests, custom providers)
            self._emb = embeddings
            return

        # Validate final config
        if not embedding_cfg.get("provider") or not embedding_cfg.get("model"):
            raise ValueError(
                "Embedding configuration missing 'provider' and/or 'model'. "
                "Set them in gallery_search/config.yaml under 'embedding_model', or pass them to Embedder()."
            )
        logger.info(
            "Initializing embeddings via init_embeddings provider=%s model=%s",
            embedding_cfg.get("provider"),
            embedding_cfg.get("model"),
        )
        self._emb = init_embeddings(**embedding_cfg)

    def _cache_dim(self, new_dim: int, source: str) -> None:
        """Cache embedding dimension once; warn on mismatches across calls."""
        cached = self.__dict__.get("dim")
        if cached is None:
            # Seed cached_property storage so dim needs no extra call
            self.__dict__["dim"] = new_dim
            logger.info("Cached embedding dimension from %s: %s", source, new_dim)
        elif cached != new_dim:
            logger.warning(
                "Embedding dimension mismatch detected: cached=%s, new=%s.", cached, new_dim
            )

    async def aembed_query(self, text: str) -> List[float]:
        """Async single-text embedding; prefers provider aembed_query if available.

        Falls back to running the sync method in a worker thread to avoid
        blocking the event loop.
        """
        emb = self._emb

        if hasattr(emb, "aembed_query"):
            vec: List[float] = await emb.aembed_query(text)
        else:
            logger.debug("Using sync embed_query in async aembed_query()")
            vec = await asyncio.to_thread(emb.embed_query, text)

        if vec:
            self._cache_dim(len(vec), "aembed_query()")
        return vec

    @cached_property
    def dim(self) -> int:
        """Embedding vector dimension, measured once from a sample embedding."""
        vec = self._emb.embed_query("Hello World!")
        if not vec:
            raise RuntimeError(
                "Embedding model returned empty vector when measuring dimension."
            )
        logger.info("Measured embedding dimension: %s", len(vec))
        return len(vec)
