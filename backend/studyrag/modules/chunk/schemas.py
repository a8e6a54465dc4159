"""Pydantic schemas for chunk entities."""

from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..common.schemas import TimestampSchema


def _validate_embedding(v: Optional[List[float]]) -> Optional[List[float]]:
    if v is not None:
        if not v:
            raise ValueError("Embedding cannot be empty")
        if len(v) > 4096:
            raise ValueError("Embedding dimension too large (max 4096)")
    return v


class ChunkBase(BaseModel):
    """Base schema for chunk data."""

    ordinal_index: Annotated[int, Field(ge=1, description="1-based position within the document")]
    content: Annotated[str, Field(min_length=1, description="Text content of the chunk")]
    embedding: Optional[List[float]] = Field(default=None, description="Vector embedding representation")
    embedding_model: Optional[str] = Field(default=None, description="Model that produced the embedding")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Chunk content cannot be blank")
        return v

    @field_validator("embedding")
    @classmethod
    def validate_embedding(cls, v: Optional[List[float]]) -> Optional[List[float]]:
        return _validate_embedding(v)


class ChunkCreate(ChunkBase):
    """Schema for creating a new chunk."""

    document_id: int = Field(description="ID of the document this chunk belongs to")


class ChunkEmbeddingUpdate(BaseModel):
    """Replacement embedding for an existing chunk."""

    embedding: List[float]
    embedding_model: Annotated[str, Field(min_length=1)]

    @field_validator("embedding")
    @classmethod
    def validate_embedding(cls, v: List[float]) -> List[float]:
        _validate_embedding(v)
        return v


class ChunkRead(TimestampSchema, ChunkBase):
    """Schema for reading chunk data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    document_id: int


class EmbeddingStats(BaseModel):
    """Embedding coverage across all stored chunks."""

    total_chunks: int = 0
    chunks_with_embeddings: int = 0
    coverage_percentage: float = 0.0
