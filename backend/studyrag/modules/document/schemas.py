"""Pydantic schemas for document entities."""

from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..common.schemas import TimestampSchema


class DocumentBase(BaseModel):
    """Base schema for document data."""

    title: Annotated[str, Field(min_length=1, max_length=255, description="Document title")]
    file_name: Annotated[str, Field(min_length=1, max_length=255, description="Original upload file name")]
    summary: Optional[str] = Field(default=None, description="Short model-generated summary")


class DocumentCreate(DocumentBase):
    """Schema for creating a new document."""

    student_id: Annotated[str, Field(min_length=1, max_length=255, description="Owner of the document")]


class DocumentSummaryUpdate(BaseModel):
    summary: Annotated[str, Field(min_length=1)]


class DocumentRead(TimestampSchema, DocumentBase):
    """Schema for reading document data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: str
    chunk_count: int = Field(default=0, description="Number of chunks in document")


class DocumentContent(BaseModel):
    """Full text of a document, rebuilt from its ordered chunks."""

    document_id: int
    title: str
    content: str
    chunk_count: int


class DocumentListResponse(BaseModel):
    documents: List[DocumentRead]
    total: int
