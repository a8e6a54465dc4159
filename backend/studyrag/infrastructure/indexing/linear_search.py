"""In-process cosine ranking over an owner's stored embeddings."""

from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ...modules.common.exceptions import DimensionMismatchError
from ..logging import get_logger
from .base import ChunkVector, RankerType, RankingQuery, SimilarityHit, SimilarityRanker, cosine_similarity

logger = get_logger(__name__)

VectorLoader = Callable[[AsyncSession, Optional[str]], Awaitable[List[ChunkVector]]]


class InProcessRanker(SimilarityRanker):
    """Brute-force cosine ranking.

    Loads every embedded chunk visible to the query's owner and scores it in
    Python. Exact, and works on any PostgreSQL without extensions, at the cost
    of reading every embedding the student owns.

    Characteristics:
    - Time Complexity: O(n * d) where n = chunks, d = dimension
    - Accuracy: exact
    - Rows whose embedding length differs from the query (left over from a
      previous embedding model) are skipped and logged, never fatal

    Args:
        vector_loader: Coroutine function ``(db, student_id) -> [ChunkVector]``
            returning embedded chunks for the owner (all owners when None).
    """

    def __init__(self, vector_loader: VectorLoader):
        self.vector_loader = vector_loader

    @property
    def ranker_type(self) -> RankerType:
        return RankerType.IN_PROCESS

    async def rank(self, query: RankingQuery, db: AsyncSession) -> List[SimilarityHit]:
        vectors = await self.vector_loader(db, query.student_id)

        if not vectors:
            return []

        hits: List[SimilarityHit] = []
        skipped = 0

        for vector in vectors:
            try:
                similarity = cosine_similarity(query.embedding, vector.embedding)
            except DimensionMismatchError:
                skipped += 1
                continue

            if similarity < query.min_similarity:
                continue

            hits.append(
                SimilarityHit(
                    chunk_id=vector.chunk_id,
                    document_id=vector.document_id,
                    content=vector.content,
                    similarity_score=similarity,
                    document_title=vector.document_title,
                    ordinal_index=vector.ordinal_index,
                )
            )

        if skipped:
            logger.warning(
                "Skipped chunks with mismatched embedding dimension",
                extra={"skipped": skipped, "query_dimension": len(query.embedding), "student_id": query.student_id},
            )

        hits.sort(key=lambda hit: hit.similarity_score, reverse=True)
        return hits[: query.top_k]
