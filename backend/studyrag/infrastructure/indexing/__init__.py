"""Similarity ranking over stored chunk embeddings."""

from .base import ChunkVector, RankerType, RankingQuery, SimilarityHit, SimilarityRanker, cosine_similarity
from .linear_search import InProcessRanker
from .pgvector import PgVectorRanker

__all__ = [
    "ChunkVector",
    "InProcessRanker",
    "PgVectorRanker",
    "RankerType",
    "RankingQuery",
    "SimilarityHit",
    "SimilarityRanker",
    "cosine_similarity",
]
