"""Semantic similarity search with an ordered fallback between rankers."""

import time
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.embedding.service import EmbeddingService
from ...infrastructure.indexing.base import RankingQuery, SimilarityHit, SimilarityRanker
from ...infrastructure.indexing.linear_search import InProcessRanker
from ...infrastructure.indexing.pgvector import PgVectorRanker
from ...infrastructure.logging import get_logger
from ..chunk.services import ChunkService
from ..common.exceptions import EmbeddingFailedError, StoreUnavailableError
from ..common.results import FallbackChain, StrategyResult
from .schemas import SearchRequest, SearchResponse

logger = get_logger(__name__)


def default_rankers(chunk_service: Optional[ChunkService] = None) -> List[SimilarityRanker]:
    """pgvector first, in-process cosine over stored rows second."""
    chunk_service = chunk_service or ChunkService()
    return [PgVectorRanker(), InProcessRanker(chunk_service.find_chunk_vectors)]


class SimilaritySearchService:
    """Find the chunks most similar to a query text.

    The query is embedded once, then each ranker is tried in order until one
    succeeds. Whatever ranker answers, the hits are re-checked here so the
    result always holds at most ``top_k`` hits, all scoring at least
    ``min_similarity``, in descending order.

    Args:
        embedding_service: Client used to embed the query
        rankers: Ranking strategies in preference order
    """

    def __init__(self, embedding_service: EmbeddingService, rankers: Optional[Sequence[SimilarityRanker]] = None):
        self.embedding_service = embedding_service
        self.rankers = list(rankers) if rankers is not None else default_rankers()

    async def search(
        self,
        query_text: str,
        db: AsyncSession,
        student_id: Optional[str] = None,
        top_k: int = 5,
        min_similarity: float = 0.7,
    ) -> List[SimilarityHit]:
        """Return the hits of a search, see ``search_ranked``."""
        request = SearchRequest(query_text=query_text, student_id=student_id, top_k=top_k, min_similarity=min_similarity)
        response = await self.search_ranked(request, db)
        return response.hits

    async def search_ranked(self, request: SearchRequest, db: AsyncSession) -> SearchResponse:
        """Embed the query and rank stored chunks against it.

        A query that cannot be embedded yields an empty, degraded response.
        An empty result is not an error.

        Raises:
            StoreUnavailableError: If every ranker failed
        """
        start_time = time.time()

        try:
            query_embedding = await self.embedding_service.embed_text(request.query_text)
        except EmbeddingFailedError as e:
            logger.warning(
                "Query embedding failed, returning no hits",
                extra={"student_id": request.student_id, "step": "query_embedding", "error": str(e)},
            )
            return SearchResponse(hits=[], degraded=True, query_time_ms=(time.time() - start_time) * 1000)

        query = RankingQuery(
            embedding=query_embedding.embedding,
            top_k=request.top_k,
            min_similarity=request.min_similarity,
            student_id=request.student_id,
        )

        chain: FallbackChain[List[SimilarityHit]] = FallbackChain(
            "similarity_search",
            [(ranker.ranker_type.value, self._strategy(ranker, query, db)) for ranker in self.rankers],
        )
        outcome = await chain.run()

        if not outcome.ok:
            raise StoreUnavailableError(
                "All ranking strategies failed: " + "; ".join(str(error) for error in outcome.errors)
            ) from (outcome.errors[-1] if outcome.errors else None)

        hits = self._finalize(outcome.value or [], query)
        query_time_ms = (time.time() - start_time) * 1000

        logger.debug(
            "Similarity search finished",
            extra={
                "student_id": request.student_id,
                "strategy": outcome.strategy,
                "hits": len(hits),
                "query_time_ms": round(query_time_ms, 2),
            },
        )

        return SearchResponse(
            hits=hits,
            strategy=outcome.strategy,
            degraded=outcome.fell_back,
            query_time_ms=query_time_ms,
        )

    @staticmethod
    def _strategy(ranker: SimilarityRanker, query: RankingQuery, db: AsyncSession):
        async def run() -> StrategyResult[List[SimilarityHit]]:
            hits = await ranker.rank(query, db)
            return StrategyResult.success(ranker.ranker_type.value, hits)

        return run

    @staticmethod
    def _finalize(hits: List[SimilarityHit], query: RankingQuery) -> List[SimilarityHit]:
        kept = [hit for hit in hits if hit.similarity_score >= query.min_similarity]
        kept.sort(key=lambda hit: hit.similarity_score, reverse=True)
        return kept[: query.top_k]
