"""Schemas for semantic search over a student's chunks."""

from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, field_validator

from ...infrastructure.indexing.base import SimilarityHit

MAX_QUERY_CHARS = 10000


class SearchRequest(BaseModel):
    """Parameters of a semantic search."""

    query_text: Annotated[str, Field(min_length=1, max_length=MAX_QUERY_CHARS, description="Text to search for")]
    student_id: Optional[str] = Field(default=None, description="Restrict to this student's documents")
    top_k: int = Field(default=5, ge=1, le=100, description="Maximum number of hits")
    min_similarity: float = Field(default=0.7, ge=-1.0, le=1.0, description="Minimum cosine similarity")

    @field_validator("query_text")
    @classmethod
    def validate_query_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Query text cannot be blank")
        return v


class SearchResponse(BaseModel):
    """Ranked hits plus how they were obtained.

    Attributes:
        hits: Descending by similarity, at most ``top_k``.
        strategy: Ranker that produced the hits, None if none ran.
        degraded: True when the query could not be embedded or the preferred
            ranker failed.
    """

    hits: List[SimilarityHit]
    strategy: Optional[str] = None
    degraded: bool = False
    query_time_ms: float = 0.0
