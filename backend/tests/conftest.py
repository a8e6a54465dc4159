"""Test configuration and fixtures for the study assistant core."""

import os
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# mypy: disable-error-code="import-untyped"
from testcontainers.core.docker_client import DockerClient
from testcontainers.postgres import PostgresContainer

os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("EMBEDDING_PROVIDER", "sentence_transformers")

from studyrag.infrastructure.database.session import Base  # noqa: E402
from studyrag.infrastructure.embedding.service import EmbeddingService  # noqa: E402
from studyrag.infrastructure.llm.service import ChatCompletionService  # noqa: E402
from studyrag.infrastructure.logging import configure_testing_logging  # noqa: E402
from studyrag.modules.chunk.models import Chunk  # noqa: E402
from studyrag.modules.document.models import Document  # noqa: E402

PGVECTOR_IMAGE = "pgvector/pgvector:pg16"
FAKE_DIMENSION = 8


def is_docker_running() -> bool:
    """Check if Docker daemon is running."""
    try:
        DockerClient()
        return True
    except Exception:
        return False


def letter_vector(text_value: str) -> List[float]:
    """Deterministic embedding: character counts bucketed into 8 slots.

    Identical texts get identical vectors, so a query equal to a stored chunk
    scores 1.0 against it.
    """
    vector = [0.0] * FAKE_DIMENSION
    for char in text_value.lower():
        if char.isalnum():
            vector[ord(char) % FAKE_DIMENSION] += 1.0
    return vector


class FakeEmbeddingService(EmbeddingService):
    """Embedding service with canned vectors and switchable failure."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, fail: bool = False):
        super().__init__(model_name="fake-embedding-model", batch_size=32)
        self.vectors = vectors or {}
        self.fail = fail
        self.calls: List[List[str]] = []

    async def _encode(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding provider unreachable")
        return [self.vectors.get(t, letter_vector(t)) for t in texts]


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    configure_testing_logging()


@pytest.fixture
def fake_embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def failing_embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService(fail=True)


@pytest.fixture
def embedding_service_factory():
    """Build a FakeEmbeddingService with custom vectors or failure."""
    return FakeEmbeddingService


@pytest.fixture
def vectorize():
    return letter_vector


@pytest.fixture
def mock_chat_service() -> AsyncMock:
    """Chat service whose ``complete`` returns a fixed answer."""
    service = AsyncMock(spec=ChatCompletionService)
    service.complete.return_value = "Respuesta del asistente"
    return service


@pytest.fixture
def mock_db() -> AsyncMock:
    """Session double for services whose store calls are mocked."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture(scope="session")
def pg_container():
    """Create a PostgreSQL container with the pgvector extension available."""
    if not is_docker_running():
        pytest.skip("Docker is required, but not running")

    with PostgresContainer(PGVECTOR_IMAGE) as pg:
        yield pg


@pytest_asyncio.fixture(scope="function")
async def test_db_url(pg_container):
    """Create a proper asyncpg URL for PostgreSQL."""
    host = pg_container.get_container_host_ip()
    port = pg_container.get_exposed_port(getattr(pg_container, "port", 5432))

    user = getattr(pg_container, "username", None) or getattr(pg_container, "POSTGRES_USER", "test")
    password = getattr(pg_container, "password", None) or getattr(pg_container, "POSTGRES_PASSWORD", "test")
    db = getattr(pg_container, "dbname", None) or getattr(pg_container, "POSTGRES_DB", "test")

    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(test_db_url):
    """Create a SQLAlchemy engine with fresh tables for each test."""
    engine = create_async_engine(test_db_url, echo=False)
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_db_engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_document(db_session: AsyncSession):
    """A document owned by student-1 with three embedded chunks."""
    document = Document(
        student_id="student-1",
        title="Apuntes de física",
        file_name="fisica.txt",
        summary="Leyes de Newton y cinemática",
    )
    db_session.add(document)
    await db_session.commit()

    contents = ["Primera ley de Newton.", "Segunda ley de Newton.", "Tercera ley de Newton."]
    for index, content in enumerate(contents, start=1):
        db_session.add(
            Chunk(
                document_id=document.id,
                ordinal_index=index,
                content=content,
                embedding=letter_vector(content),
                embedding_model="fake-embedding-model",
            )
        )
    await db_session.commit()

    return {"id": document.id, "student_id": document.student_id, "title": document.title, "contents": contents}


@pytest_asyncio.fixture
async def other_student_document(db_session: AsyncSession):
    """A document of another student sharing chunk text with ``test_document``."""
    document = Document(student_id="student-2", title="Física ajena", file_name="ajena.txt")
    db_session.add(document)
    await db_session.commit()

    db_session.add(
        Chunk(
            document_id=document.id,
            ordinal_index=1,
            content="Primera ley de Newton.",
            embedding=letter_vector("Primera ley de Newton."),
            embedding_model="fake-embedding-model",
        )
    )
    await db_session.commit()

    return {"id": document.id, "student_id": document.student_id}

