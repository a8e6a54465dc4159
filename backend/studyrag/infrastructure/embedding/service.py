"""Embedding clients turning text into fixed-dimension vectors.

Two providers are supported: a local sentence-transformers model (default) and
the OpenAI embeddings API. Both share the same contract: one vector per input,
in input order, each tagged with the model that produced it, and any provider
failure surfaces as ``EmbeddingFailedError``.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, cast

from openai import AsyncOpenAI
from sentence_transformers import SentenceTransformer

from ...modules.common.exceptions import EmbeddingFailedError
from ..config.settings import EmbeddingProviderOption, Settings
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass
class EmbeddingResult:
    """A vector and the identifier of the model that produced it."""

    embedding: List[float]
    model: str


class EmbeddingService(ABC):
    """Base embedding client.

    Subclasses implement ``_encode``; validation of inputs and outputs lives
    here so every provider fails the same way.

    Args:
        model_name: Provider model identifier, stored on each chunk
        batch_size: Maximum texts sent to the provider in one call
        dimension: Expected vector length, unchecked when None
    """

    def __init__(self, model_name: str, batch_size: int = 32, dimension: Optional[int] = None):
        self.model_name = model_name
        self.batch_size = batch_size
        self.dimension = dimension

    @abstractmethod
    async def _encode(self, texts: List[str]) -> List[List[float]]:
        """Return one raw vector per text, in order."""
        pass

    async def embed_text(self, text: str) -> EmbeddingResult:
        """Generate embedding for single text.

        Raises:
            ValueError: If the text is blank
            EmbeddingFailedError: If the provider fails or returns an empty vector
        """
        if not text.strip():
            raise ValueError("Text cannot be empty")

        results = await self.embed_texts([text])
        return results[0]

    async def embed_texts(self, texts: List[str]) -> List[EmbeddingResult]:
        """Generate embeddings for multiple texts (batch processing).

        Args:
            texts: List of texts to embed

        Returns:
            One result per input text, in the same order

        Raises:
            ValueError: If any text is blank
            EmbeddingFailedError: If the provider fails, returns a different
                number of vectors, or returns vectors of the wrong length
        """
        if not texts:
            return []

        if any(not text.strip() for text in texts):
            raise ValueError("All texts must be non-empty")

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                encoded = await self._encode(batch)
            except EmbeddingFailedError:
                raise
            except Exception as e:
                raise EmbeddingFailedError(f"{self.model_name} failed to embed {len(batch)} texts: {e}") from e

            if len(encoded) != len(batch):
                raise EmbeddingFailedError(
                    f"{self.model_name} returned {len(encoded)} vectors for {len(batch)} texts"
                )
            vectors.extend(encoded)

        if any(len(vector) == 0 for vector in vectors):
            raise EmbeddingFailedError(f"{self.model_name} returned an empty vector")

        lengths = {len(vector) for vector in vectors}
        expected = self.dimension if self.dimension is not None else len(vectors[0])
        if lengths != {expected}:
            raise EmbeddingFailedError(
                f"{self.model_name} returned vectors of length {sorted(lengths)}, expected {expected}"
            )

        logger.debug("Embedded texts", extra={"model": self.model_name, "count": len(vectors)})
        return [EmbeddingResult(embedding=vector, model=self.model_name) for vector in vectors]


class SentenceTransformerEmbeddingService(EmbeddingService):
    """Local embeddings with sentence-transformers.

    Features:
    - Lazy model loading for faster startup
    - Model loading guarded by a lock so concurrent first calls load once
    - Encoding runs in a worker thread, off the event loop
    - Normalized output, so cosine similarity equals the dot product
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2", batch_size: int = 32, dimension: Optional[int] = None):
        super().__init__(model_name=model_name, batch_size=batch_size, dimension=dimension)
        self._model: Optional[SentenceTransformer] = None
        self._model_lock = asyncio.Lock()

    async def _get_model(self) -> SentenceTransformer:
        """Get model instance, loading it if necessary."""
        if self._model is None:
            async with self._model_lock:
                if self._model is None:
                    self._model = cast(SentenceTransformer, await asyncio.to_thread(SentenceTransformer, self.model_name))
        if self._model is None:
            raise RuntimeError("Model failed to load")
        return self._model

    async def _encode(self, texts: List[str]) -> List[List[float]]:
        model = await self._get_model()

        embeddings = await asyncio.to_thread(
            model.encode,
            texts,
            convert_to_tensor=False,
            normalize_embeddings=True,
            batch_size=self.batch_size,
        )

        if hasattr(embeddings, "tolist"):
            return cast(List[List[float]], embeddings.tolist())
        return [emb.tolist() for emb in embeddings]

    async def is_loaded(self) -> bool:
        return self._model is not None


class OpenAIEmbeddingService(EmbeddingService):
    """Embeddings from the OpenAI API.

    Args:
        model_name: e.g. ``text-embedding-3-small`` (1536 dimensions)
        api_key: API key, ignored when ``client`` is given
        client: Pre-built ``AsyncOpenAI`` client, mainly for tests
    """

    def __init__(
        self,
        model_name: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        batch_size: int = 256,
        dimension: Optional[int] = None,
    ):
        super().__init__(model_name=model_name, batch_size=batch_size, dimension=dimension)
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key or None)
        return self._client

    async def _encode(self, texts: List[str]) -> List[List[float]]:
        response = await self.client.embeddings.create(
            model=self.model_name,
            input=texts,
            encoding_format="float",
        )
        # the API does not promise response order
        sorted_data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in sorted_data]


def create_embedding_service(settings: Settings) -> EmbeddingService:
    """Build the embedding client selected by ``EMBEDDING_PROVIDER``."""
    if settings.EMBEDDING_PROVIDER == EmbeddingProviderOption.OPENAI:
        return OpenAIEmbeddingService(
            model_name=settings.EMBEDDING_MODEL,
            api_key=settings.OPENAI_API_KEY,
            batch_size=settings.EMBEDDING_BATCH_SIZE,
            dimension=settings.EMBEDDING_DIMENSION,
        )

    return SentenceTransformerEmbeddingService(
        model_name=settings.EMBEDDING_MODEL,
        batch_size=settings.EMBEDDING_BATCH_SIZE,
        dimension=settings.EMBEDDING_DIMENSION,
    )
