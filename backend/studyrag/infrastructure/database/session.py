from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

from ..config.settings import settings
from ..logging import get_logger

logger = get_logger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_size=settings.POSTGRES_POOL_SIZE,
    max_overflow=settings.POSTGRES_MAX_OVERFLOW,
)

local_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase, MappedAsDataclass):
    """Base class for all database models.

    Combines SQLAlchemy's DeclarativeBase with MappedAsDataclass so every model
    gets a generated ``__init__``/``__repr__`` from its mapped columns.

    Example:
        ```python
        class Document(Base, TimestampMixin):
            __tablename__ = "documents"

            id: Mapped[int] = mapped_column(Integer, primary_key=True, init=False)
            title: Mapped[str] = mapped_column(String(255))

        document = Document(title="Apuntes de historia")
        ```
    """

    pass


async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session scoped to one operation.

    One ingestion or one chat turn uses exactly one session; callers that need
    several queries run them one after another on it.

    Yields:
        AsyncSession: A configured async database session.
    """
    async_get_db = local_session
    async with async_get_db() as db:
        yield db


async def enable_vector_extension() -> bool:
    """Try to enable the pgvector extension.

    Similarity search works without it (the in-process ranker takes over), so a
    missing extension or missing privileges is logged rather than raised.

    Returns:
        True if the extension is available after the call.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    except (ProgrammingError, DBAPIError) as e:
        logger.warning("pgvector extension unavailable, SQL-native ranking disabled", extra={"error": str(e)})
        return False
    return True


async def create_tables() -> None:
    """Create all tables in the database if they don't exist.

    Idempotent: existing tables are left unchanged. The pgvector extension is
    enabled first when the server allows it.

    Example:
        ```python
        if __name__ == "__main__":
            import asyncio
            asyncio.run(create_tables())
        ```
    """
    await enable_vector_extension()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
