"""Tests for answering a chat turn."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from studyrag.infrastructure.indexing.base import SimilarityHit
from studyrag.infrastructure.llm.service import ChatMessage
from studyrag.modules.assistant.services import (
    DEFAULT_STUDY_QUESTION,
    FALLBACK_ANSWER,
    STUDY_QUESTIONS_PROMPT,
    StudyAssistantService,
    parse_numbered_lines,
)
from studyrag.modules.common.exceptions import CompletionFailedError, StoreUnavailableError
from studyrag.modules.common.results import EnrichmentStep
from studyrag.modules.context.services import NO_DOCUMENTS_NOTE, ContextAssembler
from studyrag.modules.directive.resolver import DocumentResolver
from studyrag.modules.directive.schemas import ContextSource, DirectiveAction, DocumentContext
from studyrag.modules.document.schemas import DocumentContent, DocumentRead
from studyrag.modules.document.services import DocumentService
from studyrag.modules.search.schemas import MAX_QUERY_CHARS, SearchResponse
from studyrag.modules.search.services import SimilaritySearchService

NOW = datetime(2026, 10, 17, tzinfo=UTC)

PHYSICS = DocumentRead(
    id=1,
    student_id="student-1",
    title="Apuntes de física",
    file_name="fisica.txt",
    summary="Leyes de Newton",
    created_at=NOW,
    updated_at=NOW,
    chunk_count=3,
)

NEWTON_HIT = SimilarityHit(
    chunk_id=11,
    document_id=1,
    content="Primera ley de Newton.",
    similarity_score=0.91,
    document_title="Apuntes de física",
    ordinal_index=1,
)

CHEMISTRY_HIT = SimilarityHit(
    chunk_id=21,
    document_id=2,
    content="Enlace covalente.",
    similarity_score=0.8,
    document_title="Química",
    ordinal_index=1,
)


@pytest.fixture
def document_service():
    service = AsyncMock(spec=DocumentService)
    service.list_recent_documents.return_value = [PHYSICS]
    return service


@pytest.fixture
def search_service():
    service = AsyncMock(spec=SimilaritySearchService)
    service.search_ranked.return_value = SearchResponse(hits=[NEWTON_HIT], strategy="pgvector")
    return service


@pytest.fixture
def resolver():
    return AsyncMock(spec=DocumentResolver)


@pytest.fixture
def assistant(document_service, search_service, resolver, mock_chat_service):
    return StudyAssistantService(
        document_service=document_service,
        search_service=search_service,
        resolver=resolver,
        assembler=ContextAssembler(),
        chat_service=mock_chat_service,
    )


def ask(text):
    return [ChatMessage(role="user", content=text)]


def sent_system_prompt(mock_chat_service) -> str:
    return mock_chat_service.complete.await_args.args[0]


class TestAnswer:
    @pytest.mark.asyncio
    async def test_question_is_answered_with_hits(self, assistant, search_service, resolver, mock_chat_service, mock_db):
        messages = [
            ChatMessage(role="user", content="Hola"),
            ChatMessage(role="assistant", content="¡Hola! ¿En qué te ayudo?"),
            ChatMessage(role="user", content="¿Qué dice la primera ley?"),
        ]

        result = await assistant.answer("student-1", messages, mock_db)

        assert result.answer == "Respuesta del asistente"
        assert result.used_fallback is False
        assert result.degraded == set()
        assert result.directive is None
        assert result.hit_count == 1
        assert result.search_strategy == "pgvector"
        assert result.context_titles == ["Apuntes de física"]

        request = search_service.search_ranked.await_args.args[0]
        assert request.query_text == "¿Qué dice la primera ley?"
        assert request.student_id == "student-1"
        assert request.top_k == 5
        assert request.min_similarity == 0.7

        prompt = sent_system_prompt(mock_chat_service)
        assert "Primera ley de Newton." in prompt
        assert "1. Apuntes de física (chunks: 3, actualizado: 17 oct 2026)" in prompt
        assert mock_chat_service.complete.await_args.args[1] == messages
        resolver.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_directive_contexts_come_first(self, assistant, search_service, resolver, mock_db):
        search_service.search_ranked.return_value = SearchResponse(
            hits=[NEWTON_HIT, CHEMISTRY_HIT], strategy="pgvector"
        )
        resolver.resolve.return_value = [
            DocumentContext(
                title="Apuntes de física",
                content="Primera ley...\n\nSegunda ley...",
                source=ContextSource.DIRECTIVE,
                document_id=1,
            )
        ]

        result = await assistant.answer("student-1", ask("Resume el documento de física"), mock_db)

        assert result.directive == DirectiveAction.SUMMARIZE
        assert result.context_titles == ["Apuntes de física", "Química"]
        directive = resolver.resolve.await_args.args[1]
        assert directive.target_query == "fisica"
        assert resolver.resolve.await_args.kwargs["documents"] == [PHYSICS]

    @pytest.mark.asyncio
    async def test_search_failure_degrades(self, assistant, search_service, mock_chat_service, mock_db):
        search_service.search_ranked.side_effect = StoreUnavailableError("All ranking strategies failed")

        result = await assistant.answer("student-1", ask("¿Qué es la inercia?"), mock_db)

        assert result.answer == "Respuesta del asistente"
        assert result.degraded == {EnrichmentStep.SEARCH}
        assert result.hit_count == 0
        mock_db.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_long_message_is_truncated_for_search(self, assistant, search_service, mock_db):
        long_message = "inercia " * 2000

        result = await assistant.answer("student-1", ask(long_message), mock_db)

        assert result.degraded == set()
        assert result.answer == "Respuesta del asistente"
        request = search_service.search_ranked.await_args.args[0]
        assert len(request.query_text) == MAX_QUERY_CHARS
        assert long_message.startswith(request.query_text)

    @pytest.mark.asyncio
    async def test_invalid_search_parameters_degrade(
        self, document_service, search_service, resolver, mock_chat_service, mock_db
    ):
        assistant = StudyAssistantService(
            document_service=document_service,
            search_service=search_service,
            resolver=resolver,
            assembler=ContextAssembler(),
            chat_service=mock_chat_service,
            top_k=0,
        )

        result = await assistant.respond("student-1", ask("¿Qué es la inercia?"), mock_db)

        assert result.answer == "Respuesta del asistente"
        assert result.degraded == {EnrichmentStep.SEARCH}
        search_service.search_ranked.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_embedding_failure_is_flagged(self, assistant, search_service, mock_db):
        search_service.search_ranked.return_value = SearchResponse(hits=[], degraded=True)

        result = await assistant.answer("student-1", ask("¿Qué es la inercia?"), mock_db)

        assert result.degraded == {EnrichmentStep.QUERY_EMBEDDING}

    @pytest.mark.asyncio
    async def test_ranker_fallback_is_not_a_degraded_step(self, assistant, search_service, mock_db):
        search_service.search_ranked.return_value = SearchResponse(
            hits=[NEWTON_HIT], strategy="in_process", degraded=True
        )

        result = await assistant.answer("student-1", ask("¿Qué es la inercia?"), mock_db)

        assert result.degraded == set()
        assert result.search_strategy == "in_process"

    @pytest.mark.asyncio
    async def test_overview_failure_degrades(
        self, assistant, document_service, resolver, search_service, mock_chat_service, mock_db
    ):
        document_service.list_recent_documents.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        search_service.search_ranked.return_value = SearchResponse(hits=[], strategy="pgvector")

        result = await assistant.answer("student-1", ask("Resume el documento de física"), mock_db)

        assert result.degraded == {EnrichmentStep.OVERVIEW}
        resolver.resolve.assert_not_awaited()
        assert NO_DOCUMENTS_NOTE in sent_system_prompt(mock_chat_service)

    @pytest.mark.asyncio
    async def test_resolution_failure_degrades(self, assistant, resolver, mock_db):
        resolver.resolve.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

        result = await assistant.answer("student-1", ask("Usa mis apuntes"), mock_db)

        assert result.degraded == {EnrichmentStep.RESOLUTION}
        assert result.context_titles == ["Apuntes de física"]

    @pytest.mark.asyncio
    async def test_model_failure_raises(self, assistant, mock_chat_service, mock_db):
        mock_chat_service.complete.side_effect = CompletionFailedError("rate limited")

        with pytest.raises(CompletionFailedError):
            await assistant.answer("student-1", ask("Hola"), mock_db)


class TestRespond:
    @pytest.mark.asyncio
    async def test_model_failure_returns_fallback(self, assistant, mock_chat_service, mock_db):
        mock_chat_service.complete.side_effect = CompletionFailedError("rate limited")

        result = await assistant.respond("student-1", ask("Hola"), mock_db)

        assert result.answer == FALLBACK_ANSWER
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_success_passes_through(self, assistant, mock_db):
        result = await assistant.respond("student-1", ask("Hola"), mock_db)

        assert result.answer == "Respuesta del asistente"
        assert result.used_fallback is False


class TestStudyQuestions:
    @pytest.fixture(autouse=True)
    def document_content(self, document_service):
        document_service.get_document_content.return_value = DocumentContent(
            document_id=1, title="Apuntes de física", content="Primera ley.\n\nSegunda ley.", chunk_count=2
        )

    @pytest.mark.asyncio
    async def test_numbered_questions_are_parsed(self, assistant, mock_chat_service, mock_db):
        mock_chat_service.complete.return_value = "Preguntas:\n1. ¿Qué es la inercia?\n2.  ¿Qué dice F = m·a?\n"

        questions = await assistant.generate_study_questions(1, mock_db)

        assert questions == ["¿Qué es la inercia?", "¿Qué dice F = m·a?"]
        assert mock_chat_service.complete.await_args.args[0] == STUDY_QUESTIONS_PROMPT
        assert mock_chat_service.complete.await_args.kwargs == {"temperature": 0.5, "max_tokens": 400}

    @pytest.mark.asyncio
    async def test_model_failure_gives_default_question(self, assistant, mock_chat_service, mock_db):
        mock_chat_service.complete.side_effect = CompletionFailedError("down")

        assert await assistant.generate_study_questions(1, mock_db) == [DEFAULT_STUDY_QUESTION]

    @pytest.mark.asyncio
    async def test_unnumbered_answer_gives_default_question(self, assistant, mock_chat_service, mock_db):
        mock_chat_service.complete.return_value = "No puedo generar preguntas."

        assert await assistant.generate_study_questions(1, mock_db) == [DEFAULT_STUDY_QUESTION]


def test_parse_numbered_lines():
    assert parse_numbered_lines("1. Uno\nnada\n 2.Dos\n3.   \n10. Diez") == ["Uno", "Dos", "Diez"]
