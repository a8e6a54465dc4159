"""Tests for the embedding clients."""

import asyncio
from types import SimpleNamespace
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from studyrag.infrastructure.config.settings import EmbeddingProviderOption, Settings
from studyrag.infrastructure.embedding.service import (
    EmbeddingResult,
    EmbeddingService,
    OpenAIEmbeddingService,
    SentenceTransformerEmbeddingService,
    create_embedding_service,
)
from studyrag.modules.common.exceptions import EmbeddingFailedError


class TestSentenceTransformerEmbeddingService:
    """Test the local sentence-transformers client."""

    @pytest.fixture
    def embedding_service(self):
        return SentenceTransformerEmbeddingService(model_name="test-model")

    @pytest.fixture
    def mock_sentence_transformer(self):
        mock_model = MagicMock()
        mock_model.encode.return_value = np.array([[0.1, 0.2, 0.3] * 256])
        return mock_model

    @pytest.mark.asyncio
    async def test_init(self, embedding_service):
        assert embedding_service.model_name == "test-model"
        assert embedding_service._model is None
        assert await embedding_service.is_loaded() is False

    @pytest.mark.asyncio
    async def test_get_model_lazy_loading(self, embedding_service, mock_sentence_transformer):
        """Model is loaded on first use and reused afterwards."""
        with patch("asyncio.to_thread") as mock_to_thread:
            mock_to_thread.return_value = mock_sentence_transformer

            model1 = await embedding_service._get_model()
            assert model1 is mock_sentence_transformer
            mock_to_thread.assert_called_once()

            mock_to_thread.reset_mock()
            model2 = await embedding_service._get_model()
            assert model2 is mock_sentence_transformer
            mock_to_thread.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_model_concurrent_loading(self, embedding_service, mock_sentence_transformer):
        """Concurrent first calls load the model once."""
        with patch("asyncio.to_thread") as mock_to_thread:

            async def slow_load(*args):
                await asyncio.sleep(0.01)
                return mock_sentence_transformer

            mock_to_thread.side_effect = slow_load

            results = await asyncio.gather(*[embedding_service._get_model() for _ in range(3)])

            assert all(result is mock_sentence_transformer for result in results)
            assert mock_to_thread.call_count == 1

    @pytest.mark.asyncio
    async def test_embed_text_success(self, embedding_service, mock_sentence_transformer):
        expected_embedding = [0.1, 0.2, 0.3] * 256
        embedding_service._model = mock_sentence_transformer

        with patch("asyncio.to_thread") as mock_to_thread:
            mock_to_thread.return_value = np.array([expected_embedding])

            result = await embedding_service.embed_text("This is a test sentence.")

        assert isinstance(result, EmbeddingResult)
        assert result.embedding == expected_embedding
        assert result.model == "test-model"

    @pytest.mark.asyncio
    async def test_embed_text_empty_string(self, embedding_service):
        with pytest.raises(ValueError, match="Text cannot be empty"):
            await embedding_service.embed_text("")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            await embedding_service.embed_text("   ")

    @pytest.mark.asyncio
    async def test_embed_texts_batch_preserves_order(self, embedding_service, mock_sentence_transformer):
        expected_embeddings = [[0.1] * 768, [0.2] * 768, [0.3] * 768]
        embedding_service._model = mock_sentence_transformer

        with patch("asyncio.to_thread") as mock_to_thread:
            mock_to_thread.return_value = np.array(expected_embeddings)

            results = await embedding_service.embed_texts(["First.", "Second.", "Third."])

        assert [result.embedding for result in results] == expected_embeddings
        assert {result.model for result in results} == {"test-model"}

    @pytest.mark.asyncio
    async def test_embed_texts_empty_list(self, embedding_service):
        assert await embedding_service.embed_texts([]) == []

    @pytest.mark.asyncio
    async def test_embed_texts_rejects_blank_entries(self, embedding_service):
        with pytest.raises(ValueError, match="All texts must be non-empty"):
            await embedding_service.embed_texts(["valid", "  "])

    @pytest.mark.asyncio
    async def test_model_error_is_wrapped(self, embedding_service, mock_sentence_transformer):
        embedding_service._model = mock_sentence_transformer

        with patch("asyncio.to_thread") as mock_to_thread:
            mock_to_thread.side_effect = RuntimeError("CUDA out of memory")

            with pytest.raises(EmbeddingFailedError, match="CUDA out of memory"):
                await embedding_service.embed_text("text")

    @pytest.mark.asyncio
    async def test_count_mismatch_is_a_failure(self, embedding_service, mock_sentence_transformer):
        embedding_service._model = mock_sentence_transformer

        with patch("asyncio.to_thread") as mock_to_thread:
            mock_to_thread.return_value = np.array([[0.1, 0.2]])

            with pytest.raises(EmbeddingFailedError, match="returned 1 vectors for 2 texts"):
                await embedding_service.embed_texts(["one", "two"])

    @pytest.mark.asyncio
    async def test_empty_vector_is_a_failure(self, embedding_service, mock_sentence_transformer):
        embedding_service._model = mock_sentence_transformer

        with patch("asyncio.to_thread") as mock_to_thread:
            mock_to_thread.return_value = np.zeros((1, 0))

            with pytest.raises(EmbeddingFailedError, match="empty vector"):
                await embedding_service.embed_text("text")


class RecordingEmbeddingService(EmbeddingService):
    def __init__(self, batch_size: int):
        super().__init__(model_name="recording", batch_size=batch_size)
        self.batches: List[List[str]] = []

    async def _encode(self, texts: List[str]) -> List[List[float]]:
        self.batches.append(texts)
        return [[float(len(t)), 1.0] for t in texts]


@pytest.mark.asyncio
async def test_embed_texts_splits_into_batches():
    service = RecordingEmbeddingService(batch_size=2)

    results = await service.embed_texts(["a", "bb", "ccc"])

    assert service.batches == [["a", "bb"], ["ccc"]]
    assert [result.embedding[0] for result in results] == [1.0, 2.0, 3.0]


class FixedVectorEmbeddingService(EmbeddingService):
    def __init__(self, vectors: List[List[float]], dimension: Optional[int] = None):
        super().__init__(model_name="fixed", dimension=dimension)
        self.vectors = vectors

    async def _encode(self, texts: List[str]) -> List[List[float]]:
        return self.vectors[: len(texts)]


@pytest.mark.asyncio
async def test_configured_dimension_is_enforced():
    service = FixedVectorEmbeddingService([[1.0, 0.0, 0.0]], dimension=768)

    with pytest.raises(EmbeddingFailedError, match="expected 768"):
        await service.embed_text("hola")


@pytest.mark.asyncio
async def test_configured_dimension_accepts_matching_vectors():
    service = FixedVectorEmbeddingService([[1.0, 0.0], [0.0, 1.0]], dimension=2)

    results = await service.embed_texts(["a", "b"])

    assert [len(result.embedding) for result in results] == [2, 2]


@pytest.mark.asyncio
async def test_vectors_in_one_call_share_a_dimension():
    service = FixedVectorEmbeddingService([[1.0, 0.0], [0.0, 1.0, 0.0]])

    with pytest.raises(EmbeddingFailedError, match="length"):
        await service.embed_texts(["a", "b"])


class TestOpenAIEmbeddingService:
    """Test the OpenAI embeddings client with a mocked API client."""

    @pytest.fixture
    def mock_client(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_results_are_ordered_by_index(self, mock_client):
        mock_client.embeddings.create.return_value = SimpleNamespace(
            data=[
                SimpleNamespace(index=1, embedding=[0.0, 1.0]),
                SimpleNamespace(index=0, embedding=[1.0, 0.0]),
            ]
        )
        service = OpenAIEmbeddingService(model_name="text-embedding-3-small", client=mock_client)

        results = await service.embed_texts(["first", "second"])

        assert [result.embedding for result in results] == [[1.0, 0.0], [0.0, 1.0]]
        assert results[0].model == "text-embedding-3-small"
        mock_client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small", input=["first", "second"], encoding_format="float"
        )

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self, mock_client):
        mock_client.embeddings.create.side_effect = ConnectionError("network down")
        service = OpenAIEmbeddingService(client=mock_client)

        with pytest.raises(EmbeddingFailedError) as exc_info:
            await service.embed_text("hola")

        assert isinstance(exc_info.value.__cause__, ConnectionError)


def test_create_embedding_service_selects_provider():
    openai_settings = Settings(EMBEDDING_PROVIDER=EmbeddingProviderOption.OPENAI, EMBEDDING_MODEL="text-embedding-3-small")
    local_settings = Settings(
        EMBEDDING_PROVIDER=EmbeddingProviderOption.SENTENCE_TRANSFORMERS, EMBEDDING_MODEL="all-mpnet-base-v2"
    )

    openai_service = create_embedding_service(openai_settings)
    local_service = create_embedding_service(local_settings)

    assert isinstance(openai_service, OpenAIEmbeddingService)
    assert openai_service.model_name == "text-embedding-3-small"
    assert isinstance(local_service, SentenceTransformerEmbeddingService)
    assert local_service.model_name == "all-mpnet-base-v2"


def test_create_embedding_service_passes_dimension():
    service = create_embedding_service(
        Settings(EMBEDDING_PROVIDER=EmbeddingProviderOption.OPENAI, EMBEDDING_DIMENSION=1536)
    )

    assert service.dimension == 1536
