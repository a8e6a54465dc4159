"""Ingestion and answering pipelines for the study assistant."""

import re
from typing import List, Optional, Sequence, Set

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.config.settings import Settings
from ...infrastructure.embedding.service import EmbeddingResult, EmbeddingService
from ...infrastructure.indexing.base import SimilarityHit
from ...infrastructure.llm.service import ChatCompletionService, ChatMessage
from ...infrastructure.logging import get_logger
from ..chunk.schemas import ChunkCreate, ChunkEmbeddingUpdate, EmbeddingStats
from ..chunk.services import ChunkService
from ..chunking.services import TextChunker
from ..common.exceptions import (
    CompletionFailedError,
    DocumentNotFoundError,
    DomainError,
    EmbeddingFailedError,
    ExtractionFailedError,
)
from ..common.results import EnrichmentStep
from ..context.services import ContextAssembler
from ..directive.detector import detect_directive
from ..directive.resolver import DocumentResolver
from ..directive.schemas import Directive, DocumentContext, ResolutionStrategy
from ..document.schemas import DocumentCreate, DocumentRead
from ..document.services import DocumentService
from ..extraction.extractors import is_placeholder_text
from ..extraction.schemas import ExtractedText, RawDocument
from ..extraction.services import TextExtractor
from ..search.schemas import MAX_QUERY_CHARS, SearchRequest
from ..search.services import SimilaritySearchService, default_rankers
from .schemas import AnswerResult, IngestionResult, ReembedResult, RegenerationReport

logger = get_logger(__name__)

SUMMARY_UNAVAILABLE = "Resumen no disponible"
FALLBACK_ANSWER = (
    "Lo siento, estoy experimentando dificultades técnicas. Por favor, intenta de nuevo en unos momentos."
)
DEFAULT_STUDY_QUESTION = "¿Cuáles son los puntos principales de este documento?"

SUMMARY_PROMPT = (
    "Eres un asistente que ayuda a resumir documentos académicos. "
    "Crea un resumen conciso y útil del siguiente documento."
)
STUDY_QUESTIONS_PROMPT = (
    "Eres un asistente educativo. Genera 5 preguntas de estudio relevantes basadas en el contenido del "
    "documento. Las preguntas deben ayudar al estudiante a comprender mejor el material. "
    "Escribe cada pregunta en su propia línea, numerada como '1.'."
)

_NUMBERED_LINE = re.compile(r"^\s*\d+\.\s*(.*)$")


def document_prompt(title: str, content: str) -> str:
    return f"Título: {title}\n\nContenido:\n{content}"


def parse_numbered_lines(text: str) -> List[str]:
    """Return the text of every ``N.``-numbered line, in order."""
    items = []
    for line in text.split("\n"):
        match = _NUMBERED_LINE.match(line)
        if match and match.group(1).strip():
            items.append(match.group(1).strip())
    return items


class IngestionService:
    """Turn an upload into a stored document with ordered, embedded chunks.

    Only an unsupported file type aborts ingestion. Unreadable content,
    a failed summary or failed embeddings are recorded in
    ``IngestionResult.degraded`` and the document is stored anyway.
    """

    def __init__(
        self,
        document_service: DocumentService,
        chunk_service: ChunkService,
        extractor: TextExtractor,
        chunker: TextChunker,
        embedding_service: EmbeddingService,
        chat_service: ChatCompletionService,
        summary_temperature: float = 0.3,
        summary_max_tokens: int = 300,
    ):
        self.document_service = document_service
        self.chunk_service = chunk_service
        self.extractor = extractor
        self.chunker = chunker
        self.embedding_service = embedding_service
        self.chat_service = chat_service
        self.summary_temperature = summary_temperature
        self.summary_max_tokens = summary_max_tokens

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        embedding_service: EmbeddingService,
        chat_service: ChatCompletionService,
    ) -> "IngestionService":
        return cls(
            document_service=DocumentService(),
            chunk_service=ChunkService(),
            extractor=TextExtractor(settings.PDFTOTEXT_BINARY),
            chunker=TextChunker(settings.CHUNK_SIZE),
            embedding_service=embedding_service,
            chat_service=chat_service,
            summary_temperature=settings.SUMMARY_TEMPERATURE,
            summary_max_tokens=settings.SUMMARY_MAX_TOKENS,
        )

    async def ingest(self, raw: RawDocument, student_id: str, db: AsyncSession) -> IngestionResult:
        """Extract, summarize, chunk, embed and store one upload.

        Args:
            raw: The uploaded file
            student_id: Owner of the new document
            db: Database session

        Returns:
            The stored document with chunk counts and degraded steps

        Raises:
            UnsupportedFormatError: If the file type cannot be extracted
        """
        degraded: Set[EnrichmentStep] = set()
        log_context = {"student_id": student_id, "file_name": raw.file_name}

        try:
            extracted = await self.extractor.extract(raw)
        except ExtractionFailedError as e:
            logger.warning("Extraction failed, storing document without content", extra={**log_context, "error": str(e)})
            degraded.add(EnrichmentStep.EXTRACTION)
            extracted = ExtractedText(title=raw.base_name, text="", method="failed", degraded=True)

        if extracted.degraded:
            degraded.add(EnrichmentStep.EXTRACTION)

        summary = await self._summarize(extracted, degraded, log_context)

        document = await self.document_service.create_document(
            DocumentCreate(student_id=student_id, title=extracted.title, file_name=raw.file_name, summary=summary),
            db,
        )
        log_context["document_id"] = document.id

        texts = self.chunker.split(extracted.text)
        embeddings = await self._embed_chunks(texts, degraded, log_context)

        chunks = await self.chunk_service.create_chunks_bulk(
            [
                ChunkCreate(
                    document_id=document.id,
                    ordinal_index=index,
                    content=text,
                    embedding=embeddings[index - 1].embedding if embeddings else None,
                    embedding_model=embeddings[index - 1].model if embeddings else None,
                )
                for index, text in enumerate(texts, start=1)
            ],
            db,
        )

        document.chunk_count = len(chunks)
        embedded_count = len(chunks) if embeddings else 0

        logger.info(
            "Document ingested",
            extra={
                **log_context,
                "chunk_count": len(chunks),
                "embedded_count": embedded_count,
                "method": extracted.method,
                "degraded": sorted(step.value for step in degraded),
            },
        )

        return IngestionResult(
            document=document,
            chunk_count=len(chunks),
            embedded_count=embedded_count,
            extraction_method=extracted.method,
            degraded=degraded,
        )

    async def _summarize(self, extracted: ExtractedText, degraded: Set[EnrichmentStep], log_context: dict) -> Optional[str]:
        if not extracted.text or is_placeholder_text(extracted.text):
            return None

        try:
            return await self.chat_service.complete(
                SUMMARY_PROMPT,
                [ChatMessage(role="user", content=document_prompt(extracted.title, extracted.text))],
                temperature=self.summary_temperature,
                max_tokens=self.summary_max_tokens,
            )
        except CompletionFailedError as e:
            logger.warning("Summary generation failed", extra={**log_context, "step": "summary", "error": str(e)})
            degraded.add(EnrichmentStep.SUMMARY)
            return SUMMARY_UNAVAILABLE

    async def _embed_chunks(
        self, texts: List[str], degraded: Set[EnrichmentStep], log_context: dict
    ) -> Optional[List[EmbeddingResult]]:
        if not texts:
            return None

        try:
            return await self.embedding_service.embed_texts(texts)
        except EmbeddingFailedError as e:
            logger.warning(
                "Chunk embedding failed, storing chunks without embeddings",
                extra={**log_context, "step": "embedding", "error": str(e)},
            )
            degraded.add(EnrichmentStep.EMBEDDING)
            return None


class EmbeddingMaintenanceService:
    """Re-embed stored chunks and report embedding coverage."""

    def __init__(
        self,
        document_service: DocumentService,
        chunk_service: ChunkService,
        embedding_service: EmbeddingService,
    ):
        self.document_service = document_service
        self.chunk_service = chunk_service
        self.embedding_service = embedding_service

    async def reembed_document(self, document_id: int, db: AsyncSession) -> ReembedResult:
        """Replace the embeddings of every chunk of one document.

        Raises:
            DocumentNotFoundError: If the document does not exist
            EmbeddingFailedError: If the provider fails; no chunk is updated
        """
        document = await self.document_service.get_document(document_id, db)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        chunks = await self.chunk_service.get_chunks_by_document(document_id, db)
        if not chunks:
            return ReembedResult(document_id=document_id, chunk_count=0, embedded_count=0)

        results = await self.embedding_service.embed_texts([chunk.content for chunk in chunks])

        for chunk, result in zip(chunks, results):
            await self.chunk_service.update_chunk_embedding(
                chunk.id, ChunkEmbeddingUpdate(embedding=result.embedding, embedding_model=result.model), db
            )

        logger.info(
            "Document re-embedded",
            extra={"document_id": document_id, "chunk_count": len(chunks), "model": results[0].model},
        )
        return ReembedResult(
            document_id=document_id,
            chunk_count=len(chunks),
            embedded_count=len(results),
            embedding_model=results[0].model,
        )

    async def regenerate_all_embeddings(self, db: AsyncSession) -> RegenerationReport:
        """Re-embed every document that has chunks, continuing past failures."""
        report = RegenerationReport()

        for document_id in await self.chunk_service.get_document_ids_with_chunks(db):
            try:
                result = await self.reembed_document(document_id, db)
            except DomainError as e:
                logger.error(
                    "Re-embedding failed for document", extra={"document_id": document_id, "error": str(e)}
                )
                report.failed_document_ids.append(document_id)
                continue

            report.documents_processed += 1
            report.chunks_embedded += result.embedded_count

        logger.info(
            "Embedding regeneration finished",
            extra={
                "documents_processed": report.documents_processed,
                "chunks_embedded": report.chunks_embedded,
                "failed": len(report.failed_document_ids),
            },
        )
        return report

    async def get_embedding_stats(self, db: AsyncSession) -> EmbeddingStats:
        """Embedding coverage, or all zeros when the store cannot be read."""
        try:
            return await self.chunk_service.get_embedding_stats(db)
        except SQLAlchemyError as e:
            logger.error("Could not read embedding stats", extra={"error": str(e)})
            await db.rollback()
            return EmbeddingStats()


class StudyAssistantService:
    """Answer a chat turn from the student's documents.

    The turn runs on one session, so its reads happen one after another:
    semantic search, then the document overview, then directive resolution.
    Failures in any of them are logged and recorded in
    ``AnswerResult.degraded``; only the model call can fail the turn.

    Args:
        document_service: Source of the document overview
        search_service: Semantic search over the student's chunks
        resolver: Directive document resolution
        assembler: System instruction builder
        chat_service: Language model client
        top_k: Maximum semantic hits per turn
        min_similarity: Semantic hit threshold
        overview_limit: Number of recent documents listed
    """

    def __init__(
        self,
        document_service: DocumentService,
        search_service: SimilaritySearchService,
        resolver: DocumentResolver,
        assembler: ContextAssembler,
        chat_service: ChatCompletionService,
        top_k: int = 5,
        min_similarity: float = 0.7,
        overview_limit: int = 10,
    ):
        self.document_service = document_service
        self.search_service = search_service
        self.resolver = resolver
        self.assembler = assembler
        self.chat_service = chat_service
        self.top_k = top_k
        self.min_similarity = min_similarity
        self.overview_limit = overview_limit

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        embedding_service: EmbeddingService,
        chat_service: ChatCompletionService,
    ) -> "StudyAssistantService":
        document_service = DocumentService()
        chunk_service = ChunkService()
        return cls(
            document_service=document_service,
            search_service=SimilaritySearchService(embedding_service, default_rankers(chunk_service)),
            resolver=DocumentResolver(
                document_service,
                chunk_service,
                strategy=ResolutionStrategy(settings.DIRECTIVE_RESOLUTION_STRATEGY),
                title_match_threshold=settings.TITLE_MATCH_THRESHOLD,
                char_budget=settings.DOCUMENT_CONTEXT_CHAR_BUDGET,
                document_limit=settings.OVERVIEW_DOCUMENT_LIMIT,
            ),
            assembler=ContextAssembler(settings.SUMMARY_SNIPPET_CHARS),
            chat_service=chat_service,
            top_k=settings.SEARCH_TOP_K,
            min_similarity=settings.SEARCH_MIN_SIMILARITY,
            overview_limit=settings.OVERVIEW_DOCUMENT_LIMIT,
        )

    async def answer(self, student_id: str, messages: Sequence[ChatMessage], db: AsyncSession) -> AnswerResult:
        """Build the context for the latest user message and ask the model.

        Raises:
            CompletionFailedError: If the model call fails
        """
        degraded: Set[EnrichmentStep] = set()
        last_user_message = next((m.content for m in reversed(messages) if m.role == "user"), "")

        directive = detect_directive(last_user_message)
        hits, strategy = await self._search(student_id, last_user_message, db, degraded)
        documents = await self._overview(student_id, db, degraded)
        directive_contexts = await self._resolve(student_id, directive, documents, db, degraded)

        assembled = self.assembler.assemble(documents, directive, directive_contexts, hits)

        answer = await self.chat_service.complete(assembled.system_prompt, messages)

        return AnswerResult(
            answer=answer,
            degraded=degraded,
            directive=directive.action if directive else None,
            hit_count=len(hits),
            context_titles=[context.title for context in assembled.contexts],
            search_strategy=strategy,
        )

    async def respond(self, student_id: str, messages: Sequence[ChatMessage], db: AsyncSession) -> AnswerResult:
        """Like ``answer``, but a failed model call yields the fixed apology."""
        try:
            return await self.answer(student_id, messages, db)
        except CompletionFailedError as e:
            logger.error("Assistant answer failed, sending fallback", extra={"student_id": student_id, "error": str(e)})
            return AnswerResult(answer=FALLBACK_ANSWER, used_fallback=True)

    async def generate_study_questions(self, document_id: int, db: AsyncSession) -> List[str]:
        """Ask the model for study questions about one document.

        Falls back to a single generic question when the model fails or
        returns nothing numbered.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.document_service.get_document_content(document_id, db)

        try:
            response = await self.chat_service.complete(
                STUDY_QUESTIONS_PROMPT,
                [ChatMessage(role="user", content=document_prompt(document.title, document.content))],
                temperature=0.5,
                max_tokens=400,
            )
        except CompletionFailedError as e:
            logger.warning("Study question generation failed", extra={"document_id": document_id, "error": str(e)})
            return [DEFAULT_STUDY_QUESTION]

        return parse_numbered_lines(response) or [DEFAULT_STUDY_QUESTION]

    async def _search(
        self, student_id: str, query_text: str, db: AsyncSession, degraded: Set[EnrichmentStep]
    ) -> tuple[List[SimilarityHit], Optional[str]]:
        query_text = query_text.strip()[:MAX_QUERY_CHARS]
        if not query_text:
            return [], None

        try:
            request = SearchRequest(
                query_text=query_text, student_id=student_id, top_k=self.top_k, min_similarity=self.min_similarity
            )
            response = await self.search_service.search_ranked(request, db)
        except (DomainError, SQLAlchemyError, ValidationError) as e:
            logger.warning(
                "Semantic search failed, continuing without hits",
                extra={"student_id": student_id, "step": "search", "error": str(e)},
            )
            degraded.add(EnrichmentStep.SEARCH)
            await db.rollback()
            return [], None

        if response.degraded and response.strategy is None:
            degraded.add(EnrichmentStep.QUERY_EMBEDDING)

        return response.hits, response.strategy

    async def _overview(self, student_id: str, db: AsyncSession, degraded: Set[EnrichmentStep]) -> List[DocumentRead]:
        try:
            return await self.document_service.list_recent_documents(student_id, db, limit=self.overview_limit)
        except SQLAlchemyError as e:
            logger.warning(
                "Document overview unavailable", extra={"student_id": student_id, "step": "overview", "error": str(e)}
            )
            degraded.add(EnrichmentStep.OVERVIEW)
            await db.rollback()
            return []

    async def _resolve(
        self,
        student_id: str,
        directive: Optional[Directive],
        documents: List[DocumentRead],
        db: AsyncSession,
        degraded: Set[EnrichmentStep],
    ) -> List[DocumentContext]:
        if directive is None or not documents:
            return []

        try:
            return await self.resolver.resolve(student_id, directive, db, documents=documents)
        except (DomainError, SQLAlchemyError) as e:
            logger.warning(
                "Directive resolution failed, continuing without documents",
                extra={"student_id": student_id, "step": "resolution", "error": str(e)},
            )
            degraded.add(EnrichmentStep.RESOLUTION)
            await db.rollback()
            return []
