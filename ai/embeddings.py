"""Embedding service backed by the OpenAI embeddings API.

Inputs are whitespace-normalized and capped before being sent. There is no
retry: a provider failure surfaces as ``EmbeddingError`` to the caller.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterable

from openai import AsyncOpenAI, OpenAIError

from lookbook.config import settings
from lookbook.pipelines.normalization import normalize_whitespace, truncate

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when embedding computation fails."""
    pass


@lru_cache(maxsize=1)
def _get_client() -> AsyncOpenAI:
    """Create and cache the OpenAI client.

    Raises:
        EmbeddingError: If no API key is configured
    """
    if not settings.openai_api_key:
        raise EmbeddingError("OPENAI_API_KEY not configured")
    logger.info(f"Initializing embedding client for model {settings.embeddings.model_name}")
    return AsyncOpenAI(api_key=settings.openai_api_key)


def prepare_embedding_input(text: str) -> str:
    """Collapse whitespace, trim, and cap at ``EMBEDDING_MAX_CHARS``."""
    return truncate(normalize_whitespace(text), settings.embeddings.max_chars)


async def embed_texts(texts: list[str] | Iterable[str]) -> list[list[float]]:
    """Compute embeddings for a batch of texts in a single provider call.

    Args:
        texts: List or iterable of text strings to embed

    Returns:
        List of embedding vectors in input order

    Raises:
        EmbeddingError: If the provider call fails
        ValueError: If texts contains non-string items
    """
    text_list = list(texts)
    if not text_list:
        logger.warning("Empty text list provided to embed_texts")
        return []

    if not all(isinstance(t, str) for t in text_list):
        raise ValueError("All items in texts must be strings")

    inputs = [prepare_embedding_input(t) for t in text_list]

    try:
        client = _get_client()
        logger.debug(f"Encoding {len(inputs)} texts")
        response = await client.embeddings.create(
            model=settings.embeddings.model_name,
            input=inputs,
        )
    except OpenAIError as e:
        logger.error(f"Embedding computation failed: {e}")
        raise EmbeddingError(f"Failed to compute embeddings: {e}") from e

    vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
    if len(vectors) != len(inputs):
        raise EmbeddingError(f"Expected {len(inputs)} embeddings, got {len(vectors)}")
    return vectors


async def embed_single(text: str) -> list[float]:
    """Convenience function to embed a single text."""
    embeddings = await embed_texts([text])
    return embeddings[0]


def get_model_info() -> dict[str, str | int]:
    return {
        "model_name": settings.embeddings.model_name,
        "dimension": settings.embeddings.dim,
        "max_chars": settings.embeddings.max_chars,
    }
