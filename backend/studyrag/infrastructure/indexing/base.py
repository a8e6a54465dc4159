"""Shared types for similarity ranking over stored chunk embeddings."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ...modules.common.exceptions import DimensionMismatchError


class RankerType(str, Enum):
    """Supported ranking strategies, in default preference order."""

    PGVECTOR = "pgvector"
    IN_PROCESS = "in_process"


@dataclass
class ChunkVector:
    """A stored chunk with its embedding and the title of its document."""

    chunk_id: int
    document_id: int
    content: str
    embedding: List[float]
    ordinal_index: int
    document_title: str


@dataclass
class SimilarityHit:
    """A chunk ranked against a query."""

    chunk_id: int
    document_id: int
    content: str
    similarity_score: float
    document_title: str
    ordinal_index: int


@dataclass
class RankingQuery:
    """Parameters of a single ranking request.

    Attributes:
        embedding: The query vector.
        top_k: Maximum number of hits to return.
        min_similarity: Hits scoring below this are dropped.
        student_id: When set, only that student's documents are ranked.
    """

    embedding: List[float]
    top_k: int
    min_similarity: float
    student_id: Optional[str] = None


class SimilarityRanker(ABC):
    """Ranks stored chunks against a query embedding.

    Implementations trade where the work happens: inside PostgreSQL with the
    pgvector distance operator, or in this process over loaded vectors. Both
    must return hits in descending score order, at most ``top_k`` of them,
    each scoring at least ``min_similarity``. Any failure is raised; choosing
    the next ranker is the caller's job.
    """

    @property
    @abstractmethod
    def ranker_type(self) -> RankerType:
        """Return the type of this ranker."""
        pass

    @abstractmethod
    async def rank(self, query: RankingQuery, db: AsyncSession) -> List[SimilarityHit]:
        """Return the best chunks for ``query``.

        Args:
            query: The ranking request
            db: Database session

        Returns:
            List of hits sorted by similarity (descending)
        """
        pass


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Formula: cos(θ) = (A · B) / (||A|| ||B||)

    Returns 0.0 when either vector has zero magnitude. The result is clamped to
    [-1, 1] to absorb floating point drift.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(vec1) != len(vec2):
        raise DimensionMismatchError(len(vec1), len(vec2))

    dot_product = sum(a * b for a, b in zip(vec1, vec2))

    magnitude1 = math.sqrt(sum(a * a for a in vec1))
    magnitude2 = math.sqrt(sum(b * b for b in vec2))

    if magnitude1 == 0.0 or magnitude2 == 0.0:
        return 0.0

    similarity = dot_product / (magnitude1 * magnitude2)

    return max(-1.0, min(1.0, similarity))
