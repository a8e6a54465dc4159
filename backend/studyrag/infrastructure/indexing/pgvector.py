"""SQL-native ranking with the pgvector cosine distance operator."""

from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .base import RankerType, RankingQuery, SimilarityHit, SimilarityRanker

_RANK_SQL = """
SELECT
    c.id AS chunk_id,
    c.document_id AS document_id,
    c.content AS content,
    c.ordinal_index AS ordinal_index,
    d.title AS document_title,
    1 - (CAST(c.embedding AS vector) <=> CAST(CAST(:query AS text) AS vector)) AS similarity
FROM chunks AS c
JOIN documents AS d ON d.id = c.document_id
WHERE c.embedding IS NOT NULL
  {owner_clause}
  AND 1 - (CAST(c.embedding AS vector) <=> CAST(CAST(:query AS text) AS vector)) >= :min_similarity
ORDER BY CAST(c.embedding AS vector) <=> CAST(CAST(:query AS text) AS vector)
LIMIT :top_k
"""


def to_vector_literal(embedding: List[float]) -> str:
    """Render an embedding in pgvector's text input format, ``[0.1,0.2,...]``."""
    return "[" + ",".join(repr(float(value)) for value in embedding) + "]"


class PgVectorRanker(SimilarityRanker):
    """Rank inside PostgreSQL in a single query.

    Embeddings are stored as ``FLOAT[]`` and cast to ``vector`` at query time,
    so the schema does not depend on the extension being installed. When the
    extension is missing, or stored rows disagree on dimension, PostgreSQL
    raises; the transaction is rolled back so the same session can serve the
    next ranker, and the error propagates.
    """

    @property
    def ranker_type(self) -> RankerType:
        return RankerType.PGVECTOR

    async def rank(self, query: RankingQuery, db: AsyncSession) -> List[SimilarityHit]:
        params: Dict[str, Any] = {
            "query": to_vector_literal(query.embedding),
            "min_similarity": query.min_similarity,
            "top_k": query.top_k,
        }

        owner_clause = ""
        if query.student_id is not None:
            owner_clause = "AND d.student_id = :student_id"
            params["student_id"] = query.student_id

        stmt = text(_RANK_SQL.format(owner_clause=owner_clause))

        try:
            result = await db.execute(stmt, params)
            rows = result.mappings().all()
        except Exception:
            await db.rollback()
            raise

        return [
            SimilarityHit(
                chunk_id=row["chunk_id"],
                document_id=row["document_id"],
                content=row["content"],
                similarity_score=float(row["similarity"]),
                document_title=row["document_title"],
                ordinal_index=row["ordinal_index"],
            )
            for row in rows
        ]
