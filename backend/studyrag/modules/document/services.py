"""Document storage service."""

from datetime import datetime, timezone
from typing import Any, List, Optional, cast

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..chunk.models import Chunk
from ..common.exceptions import DocumentNotFoundError
from .crud import document_crud
from .models import Document
from .schemas import DocumentContent, DocumentCreate, DocumentRead


class DocumentService:
    """Service for a student's uploaded documents.

    Documents are listed with their chunk counts, most recently updated first,
    which is the order the assistant presents them in.
    """

    async def create_document(
        self,
        document_data: DocumentCreate,
        db: AsyncSession,
    ) -> DocumentRead:
        """Create a new document.

        Args:
            document_data: Document creation data
            db: Database session

        Returns:
            Created document with a chunk count of 0
        """
        created_document = cast(Any, await document_crud.create(db=db, object=document_data))

        return DocumentRead.model_validate(created_document)

    def _with_chunk_count(self):
        return (
            select(Document, func.count(Chunk.id).label("chunk_count"))
            .outerjoin(Chunk, Document.id == Chunk.document_id)
            .group_by(Document.id)
        )

    @staticmethod
    def _to_read(document: Document, chunk_count: int) -> DocumentRead:
        document_read = DocumentRead.model_validate(document)
        document_read.chunk_count = chunk_count
        return document_read

    async def get_document(
        self,
        document_id: int,
        db: AsyncSession,
    ) -> Optional[DocumentRead]:
        """Get a specific document with chunk count."""
        stmt = self._with_chunk_count().where(Document.id == document_id)

        result = await db.execute(stmt)
        row = result.first()

        if not row:
            return None

        return self._to_read(row.Document, row.chunk_count)

    async def list_recent_documents(
        self,
        student_id: str,
        db: AsyncSession,
        limit: int = 10,
    ) -> List[DocumentRead]:
        """Get a student's documents, most recently updated first.

        Args:
            student_id: Owner of the documents
            db: Database session
            limit: Maximum number of documents to return

        Returns:
            Documents with chunk counts
        """
        stmt = (
            self._with_chunk_count()
            .where(Document.student_id == student_id)
            .order_by(Document.updated_at.desc().nulls_last(), Document.id.desc())
            .limit(limit)
        )

        result = await db.execute(stmt)

        return [self._to_read(row.Document, row.chunk_count) for row in result.all()]

    async def update_summary(
        self,
        document_id: int,
        summary: str,
        db: AsyncSession,
    ) -> None:
        await document_crud.update(
            db=db,
            object={"summary": summary, "updated_at": datetime.now(timezone.utc)},
            id=document_id,
        )

    async def delete_document(
        self,
        document_id: int,
        db: AsyncSession,
    ) -> bool:
        """Delete a document; its chunks go with it.

        Returns:
            False if the document did not exist
        """
        exists = await document_crud.exists(db=db, id=document_id)
        if not exists:
            return False

        await document_crud.delete(db=db, id=document_id)
        return True

    async def get_document_content(
        self,
        document_id: int,
        db: AsyncSession,
    ) -> DocumentContent:
        """Rebuild a document's text by joining its chunks with blank lines.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.get_document(document_id, db)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        stmt = select(Chunk.content).where(Chunk.document_id == document_id).order_by(Chunk.ordinal_index)
        result = await db.execute(stmt)
        contents = list(result.scalars().all())

        return DocumentContent(
            document_id=document.id,
            title=document.title,
            content="\n\n".join(contents),
            chunk_count=len(contents),
        )
