from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml
from dotenv import load_dotenv

load_dotenv(override=True)

logger = logging.getLogger(__name__)

CONFIG_FILE_PATH = Path(__file__).parent / "config.yaml"


def load_config(config_path: Path | str) -> Dict[str, Any]:
    """Load configuration from a given YAML file path.

    Args:
        config_path: Explicit path to the configuration file.

    Returns:
        Parsed configuration dictionary.

    Raises:
        FileNotFoundError: If the configuration file is not found.
        ValueError: If there is an error parsing the YAML file.
    """
    path = Path(config_path)

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise FileNotFoundError(f"Configuration file not found: {path}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file '{path}': {e}") from e

    return data or {}


@dataclass(frozen=True)
class UploadConfig:
    dir: Path = Path("uploads")
    max_file_size: int = 10 * 1024 * 1024
    max_files: int = 10
    allowed_mime_types: Tuple[str, ...] = (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
    )


@dataclass(frozen=True)
class SearchConfig:
    default_limit: int = 10
    max_limit: int = 50
    default_score_threshold: float = 0.7
    max_suggestions: int = 5
    suggestion_terms: Tuple[str, ...] = (
        "landscape",
        "people",
        "nature",
        "city",
        "sunset",
        "ocean",
    )


@dataclass(frozen=True)
class TimeoutConfig:
    # Generation calls (vision + embeddings) are slow; stats/health are not.
    generation_sec: float = 30.0
    store_sec: float = 10.0
    stats_sec: float = 5.0


@dataclass(frozen=True)
class MilvusConfig:
    uri: str = "http://localhost:19530"
    token: str = "root:Milvus"
    collection: str = "gallery_images"


@dataclass(frozen=True)
class AppConfig:
    """Application configuration assembled from config.yaml and the environment.

    The raw YAML dictionary is kept in ``raw`` so that the model adapters can
    pass provider-specific keys straight through to LangChain.
    """

    upload: UploadConfig = field(default_factory=UploadConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    milvus: MilvusConfig = field(default_factory=MilvusConfig)
    environment: str = "development"
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        upload_cfg = data.get("upload") or {}
        search_cfg = data.get("search") or {}
        timeout_cfg = data.get("timeouts") or {}
        milvus_cfg = data.get("milvus") or {}

        upload_defaults = UploadConfig()
        upload = UploadConfig(
            dir=Path(
                os.getenv("UPLOAD_DIR") or upload_cfg.get("dir") or upload_defaults.dir
            ),
            max_file_size=int(
                upload_cfg.get("max_file_size", upload_defaults.max_file_size)
            ),
            max_files=int(upload_cfg.get("max_files", upload_defaults.max_files)),
            allowed_mime_types=tuple(
                upload_cfg.get("allowed_mime_types")
                or upload_defaults.allowed_mime_types
            ),
        )

        search_defaults = SearchConfig()
        search = SearchConfig(
            default_limit=int(
                search_cfg.get("default_limit", search_defaults.default_limit)
            ),
            max_limit=int(search_cfg.get("max_limit", search_defaults.max_limit)),
            default_score_threshold=float(
                search_cfg.get(
                    "default_score_threshold", search_defaults.default_score_threshold
                )
            ),
            max_suggestions=int(
                search_cfg.get("max_suggestions", search_defaults.max_suggestions)
            ),
            suggestion_terms=tuple(
                search_cfg.get("suggestion_terms", search_defaults.suggestion_terms)
            ),
        )

        timeout_defaults = TimeoutConfig()
        timeouts = TimeoutConfig(
            generation_sec=float(
                timeout_cfg.get("generation_sec", timeout_defaults.generation_sec)
            ),
            store_sec=float(timeout_cfg.get("store_sec", timeout_defaults.store_sec)),
            stats_sec=float(timeout_cfg.get("stats_sec", timeout_defaults.stats_sec)),
        )

        milvus_defaults = MilvusConfig()
        milvus = MilvusConfig(
            uri=os.getenv("MILVUS_URI") or milvus_cfg.get("uri") or milvus_defaults.uri,
            token=os.getenv("MILVUS_TOKEN")
            or milvus_cfg.get("token")
            or milvus_defaults.token,
            collection=os.getenv("GALLERY_COLLECTION")
            or milvus_cfg.get("collection")
            or milvus_defaults.collection,
        )

        return cls(
            upload=upload,
            search=search,
            timeouts=timeouts,
            milvus=milvus,
            environment=os.getenv("APP_ENV") or data.get("environment") or "development",
            raw=dict(data),
        )


def get_config(config_path: Path | str | None = None) -> AppConfig:
    """Build the application config.

    Resolution order for the YAML file: explicit argument, then the
    GALLERY_CONFIG_PATH environment variable, then the packaged config.yaml.
    """
    path = config_path or os.getenv("GALLERY_CONFIG_PATH") or CONFIG_FILE_PATH
    try:
        data = load_config(path)
    except FileNotFoundError:
        logger.warning("Configuration file %s not found; using defaults", path)
        data = {}
    return AppConfig.from_dict(data)
