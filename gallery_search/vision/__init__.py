"""Vision and embedding model adapters."""

from .describer import ImageDescriber
from .provider import DescriptionEmbeddingProvider, translate_provider_error

__all__ = ["DescriptionEmbeddingProvider", "ImageDescriber", "translate_provider_error"]
