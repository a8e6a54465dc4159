"""Schemas for ingestion, embedding maintenance and answering results."""

from typing import List, Optional, Set

from pydantic import BaseModel, Field

from ..common.results import EnrichmentStep
from ..directive.schemas import DirectiveAction
from ..document.schemas import DocumentRead


class IngestionResult(BaseModel):
    """Outcome of ingesting one upload.

    ``degraded`` names the enrichment steps that failed; the document and its
    chunks were stored regardless.
    """

    document: DocumentRead
    chunk_count: int
    embedded_count: int
    extraction_method: str
    degraded: Set[EnrichmentStep] = Field(default_factory=set)


class ReembedResult(BaseModel):
    document_id: int
    chunk_count: int
    embedded_count: int
    embedding_model: Optional[str] = None


class RegenerationReport(BaseModel):
    """Totals of a full embedding regeneration."""

    documents_processed: int = 0
    chunks_embedded: int = 0
    failed_document_ids: List[int] = Field(default_factory=list)


class AnswerResult(BaseModel):
    """The assistant's reply to one chat turn.

    Attributes:
        answer: Text to show the student.
        degraded: Enrichment steps that failed while building the context.
        used_fallback: True when the model call failed and ``answer`` is the
            fixed apology message.
    """

    answer: str
    degraded: Set[EnrichmentStep] = Field(default_factory=set)
    used_fallback: bool = False
    directive: Optional[DirectiveAction] = None
    hit_count: int = 0
    context_titles: List[str] = Field(default_factory=list)
    search_strategy: Optional[str] = None
