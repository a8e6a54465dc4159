"""Chunk storage service."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.indexing.base import ChunkVector
from ..document.models import Document
from .crud import chunk_crud
from .models import Chunk
from .schemas import ChunkCreate, ChunkEmbeddingUpdate, ChunkRead, EmbeddingStats


class ChunkService:
    """Service for the ordered text segments of documents.

    Chunks are bulk-inserted once per ingestion and read back in ordinal
    order. After that only their embeddings change.
    """

    async def create_chunks_bulk(
        self,
        chunks_data: List[ChunkCreate],
        db: AsyncSession,
    ) -> List[ChunkRead]:
        """Create multiple chunks in one bulk insert.

        Args:
            chunks_data: Chunks to insert, embeddings optional
            db: Database session

        Returns:
            Created chunks in ordinal order
        """
        if not chunks_data:
            return []

        now = datetime.now(timezone.utc)
        chunks_to_insert = [
            {
                "document_id": chunk_data.document_id,
                "ordinal_index": chunk_data.ordinal_index,
                "content": chunk_data.content,
                "embedding": chunk_data.embedding,
                "embedding_model": chunk_data.embedding_model,
                "created_at": now,
                "updated_at": now,
            }
            for chunk_data in chunks_data
        ]

        stmt = insert(Chunk).returning(Chunk)
        result = await db.execute(stmt, chunks_to_insert)
        created = [ChunkRead.model_validate(chunk) for chunk in result.scalars().all()]
        await db.commit()

        return sorted(created, key=lambda chunk: chunk.ordinal_index)

    async def get_chunks_by_document(
        self,
        document_id: int,
        db: AsyncSession,
    ) -> List[ChunkRead]:
        """Get every chunk of a document ordered by ``ordinal_index``."""
        stmt = select(Chunk).where(Chunk.document_id == document_id).order_by(Chunk.ordinal_index)
        result = await db.execute(stmt)
        return [ChunkRead.model_validate(chunk) for chunk in result.scalars().all()]

    async def find_chunk_vectors(
        self,
        db: AsyncSession,
        student_id: Optional[str] = None,
    ) -> List[ChunkVector]:
        """Load embedded chunks with their document titles.

        Args:
            db: Database session
            student_id: Restrict to this student's documents; all when None

        Returns:
            Every chunk that has an embedding, in no particular order
        """
        stmt = (
            select(
                Chunk.id,
                Chunk.document_id,
                Chunk.content,
                Chunk.embedding,
                Chunk.ordinal_index,
                Document.title,
            )
            .join(Document, Document.id == Chunk.document_id)
            .where(Chunk.embedding.is_not(None))
        )
        if student_id is not None:
            stmt = stmt.where(Document.student_id == student_id)

        result = await db.execute(stmt)

        return [
            ChunkVector(
                chunk_id=row.id,
                document_id=row.document_id,
                content=row.content,
                embedding=list(row.embedding),
                ordinal_index=row.ordinal_index,
                document_title=row.title,
            )
            for row in result.all()
        ]

    async def update_chunk_embedding(
        self,
        chunk_id: int,
        update_data: ChunkEmbeddingUpdate,
        db: AsyncSession,
    ) -> None:
        """Replace the embedding of one chunk."""
        await chunk_crud.update(
            db=db,
            object={
                "embedding": update_data.embedding,
                "embedding_model": update_data.embedding_model,
                "updated_at": datetime.now(timezone.utc),
            },
            id=chunk_id,
        )

    async def clear_document_embeddings(self, document_id: int, db: AsyncSession) -> None:
        stmt = (
            update(Chunk)
            .where(Chunk.document_id == document_id)
            .values(embedding=None, embedding_model=None, updated_at=datetime.now(timezone.utc))
        )
        await db.execute(stmt)
        await db.commit()

    async def count_chunks(self, db: AsyncSession, embedded_only: bool = False) -> int:
        stmt = select(func.count(Chunk.id))
        if embedded_only:
            stmt = stmt.where(Chunk.embedding.is_not(None))
        result = await db.execute(stmt)
        return int(result.scalar_one())

    async def get_embedding_stats(self, db: AsyncSession) -> EmbeddingStats:
        """Count chunks and embedded chunks; coverage is rounded to 2 decimals."""
        total = await self.count_chunks(db)
        embedded = await self.count_chunks(db, embedded_only=True)

        coverage = round(embedded / total * 100, 2) if total else 0.0

        return EmbeddingStats(total_chunks=total, chunks_with_embeddings=embedded, coverage_percentage=coverage)

    async def get_document_ids_with_chunks(self, db: AsyncSession) -> List[int]:
        stmt = select(Chunk.document_id).distinct().order_by(Chunk.document_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())
