# src/embeddings/embedder_factory.py — v3
"""Factory: instantiate the label embedder from configuration.

Each provider is registered with a dotted class path and a function that
turns ``Settings`` into constructor arguments. Adapters load models and
clients lazily, so creating one is cheap.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import Any

from songmatch.config.settings import Settings
from songmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

KwargsBuilder = Callable[[Settings], dict[str, Any]]


def _openai_kwargs(settings: Settings) -> dict[str, Any]:
    return {
        "model": settings.embedding_model,
        "api_key": settings.openai_api_key or None,
        "dimensions": settings.embedding_dimensions,
    }


def _sentence_transformers_kwargs(settings: Settings) -> dict[str, Any]:
    return {
        "model": settings.embedding_st_model,
        "dimensions": settings.embedding_dimensions,
    }


def _ollama_kwargs(settings: Settings) -> dict[str, Any]:
    return {
        "model": settings.embedding_ollama_model,
        "base_url": settings.ollama_base_url,
        "dimensions": settings.embedding_dimensions,
    }


def _dimensions_only(settings: Settings) -> dict[str, Any]:
    return {"dimensions": settings.embedding_dimensions}


_PROVIDER_REGISTRY: dict[str, tuple[str, KwargsBuilder]] = {
    "openai": (
        "songmatch.embeddings.openai_embedder.OpenAIEmbedder",
        _openai_kwargs,
    ),
    "sentence_transformers": (
        "songmatch.embeddings.sentence_tf_embedder.SentenceTransformerEmbedder",
        _sentence_transformers_kwargs,
    ),
    "ollama": (
        "songmatch.embeddings.ollama_embedder.OllamaEmbedder",
        _ollama_kwargs,
    ),
}


class UnsupportedEmbeddingProviderError(ValueError):
    """Raised when an embedding provider is not registered."""


def create_embedder(settings: Settings | None = None) -> BaseEmbedder:
    """Instantiate the configured embedding provider.

    Args:
        settings: Application settings. None gives the default local
            sentence-transformers model.

    Raises:
        UnsupportedEmbeddingProviderError: If EMBEDDING_PROVIDER is unknown.
    """
    if settings is None:
        from songmatch.embeddings.sentence_tf_embedder import SentenceTransformerEmbedder
        return SentenceTransformerEmbedder()

    provider = settings.embedding_provider
    try:
        class_path, build_kwargs = _PROVIDER_REGISTRY[provider]
    except KeyError:
        raise UnsupportedEmbeddingProviderError(
            f"Unsupported embedding provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        ) from None

    embedder = _import_class(class_path)(**build_kwargs(settings))
    logger.debug("Created %s embedder: model=%s", provider, embedder.model_name)
    return embedder


def register_embedding_provider(
    name: str,
    class_path: str,
    build_kwargs: KwargsBuilder | None = None,
) -> None:
    """Register a custom provider; by default it only receives ``dimensions``."""
    _PROVIDER_REGISTRY[name] = (class_path, build_kwargs or _dimensions_only)


def _import_class(class_path: str) -> type[BaseEmbedder]:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
