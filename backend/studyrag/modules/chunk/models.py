"""SQLAlchemy models for chunk entities."""

from typing import List, Optional

from sqlalchemy import ARRAY, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ...infrastructure.database.models import TimestampMixin
from ...infrastructure.database.session import Base


class Chunk(Base, TimestampMixin):
    """A contiguous segment of a document's text with its embedding.

    ``ordinal_index`` starts at 1 and is contiguous within a document. Chunks
    are written once at ingestion; afterwards only ``embedding`` and
    ``embedding_model`` change, on re-embedding. Deleting the document deletes
    its chunks.
    """

    __tablename__ = "chunks"
    __table_args__ = (UniqueConstraint("document_id", "ordinal_index", name="uq_chunks_document_ordinal"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, init=False)
    document_id: Mapped[int] = mapped_column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), index=True)
    ordinal_index: Mapped[int] = mapped_column(Integer)
    content: Mapped[str] = mapped_column(Text)
    embedding: Mapped[Optional[List[float]]] = mapped_column(ARRAY(Float), default=None)
    embedding_model: Mapped[Optional[str]] = mapped_column(String(255), default=None)
