"""Embedding infrastructure for text-to-vector conversion."""

from .service import (
    EmbeddingResult,
    EmbeddingService,
    OpenAIEmbeddingService,
    SentenceTransformerEmbeddingService,
    create_embedding_service,
)

__all__ = [
    "EmbeddingResult",
    "EmbeddingService",
    "OpenAIEmbeddingService",
    "SentenceTransformerEmbeddingService",
    "create_embedding_service",
]
