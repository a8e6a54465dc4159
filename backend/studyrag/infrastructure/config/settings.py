import logging
import os
from enum import Enum
from typing import Optional

from pydantic_settings import BaseSettings
from starlette.config import Config

logger = logging.getLogger(__name__)

current_file_dir = os.path.dirname(os.path.realpath(__file__))
project_root = os.path.abspath(os.path.join(current_file_dir, "..", "..", "..", ".."))

env_paths = [
    "/code/.env",
    os.path.join(project_root, ".env"),
    "/.env",
]

env_path = next((path for path in env_paths if os.path.isfile(path)), None)
if env_path:
    logger.info(f"Using environment file at: {env_path}")

config = Config(env_path)


class EnvironmentOption(str, Enum):
    """Environment options for the application."""

    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"
    LOCAL = "local"


class EmbeddingProviderOption(str, Enum):
    """Embedding backends the ingestion and search pipeline can talk to."""

    SENTENCE_TRANSFORMERS = "sentence_transformers"
    OPENAI = "openai"


class EnvironmentSettings(BaseSettings):
    """Environment-related settings."""

    ENVIRONMENT: EnvironmentOption = config("ENVIRONMENT", default=EnvironmentOption.DEVELOPMENT, cast=EnvironmentOption)


class DatabaseSettings(BaseSettings):
    """Database-related settings."""

    POSTGRES_USER: str = config("POSTGRES_USER", default="postgres")
    POSTGRES_PASSWORD: str = config("POSTGRES_PASSWORD", default="postgres")
    POSTGRES_SERVER: str = config("POSTGRES_SERVER", default="localhost")
    POSTGRES_PORT: int = config("POSTGRES_PORT", default=5432, cast=int)
    POSTGRES_DB: str = config("POSTGRES_DB", default="postgres")
    POSTGRES_ASYNC_PREFIX: str = config("POSTGRES_ASYNC_PREFIX", default="postgresql+asyncpg://")

    POSTGRES_POOL_SIZE: int = config("POSTGRES_POOL_SIZE", default=20, cast=int)
    POSTGRES_MAX_OVERFLOW: int = config("POSTGRES_MAX_OVERFLOW", default=0, cast=int)

    @property
    def DATABASE_URL(self) -> str:
        """Get the full database URL."""
        return (
            f"{self.POSTGRES_ASYNC_PREFIX}{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:"
            f"{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


class EmbeddingSettings(BaseSettings):
    """Embedding provider settings."""

    EMBEDDING_PROVIDER: EmbeddingProviderOption = config(
        "EMBEDDING_PROVIDER", default=EmbeddingProviderOption.SENTENCE_TRANSFORMERS, cast=EmbeddingProviderOption
    )
    EMBEDDING_MODEL: str = config("EMBEDDING_MODEL", default="all-mpnet-base-v2")
    EMBEDDING_DIMENSION: Optional[int] = config("EMBEDDING_DIMENSION", default=None, cast=int)
    EMBEDDING_BATCH_SIZE: int = config("EMBEDDING_BATCH_SIZE", default=32, cast=int)

    OPENAI_API_KEY: str = config("OPENAI_API_KEY", default="")


class LLMSettings(BaseSettings):
    """Chat completion settings."""

    LLM_MODEL: str = config("LLM_MODEL", default="gpt-4o-mini")
    LLM_TEMPERATURE: float = config("LLM_TEMPERATURE", default=0.7, cast=float)
    LLM_MAX_TOKENS: int = config("LLM_MAX_TOKENS", default=1000, cast=int)

    SUMMARY_TEMPERATURE: float = config("SUMMARY_TEMPERATURE", default=0.3, cast=float)
    SUMMARY_MAX_TOKENS: int = config("SUMMARY_MAX_TOKENS", default=300, cast=int)


class RAGSettings(BaseSettings):
    """Retrieval pipeline tuning.

    The similarity and title-match thresholds were picked empirically; they
    are settings so deployments can tune them per embedding model.
    """

    CHUNK_SIZE: int = config("CHUNK_SIZE", default=1000, cast=int)

    SEARCH_TOP_K: int = config("SEARCH_TOP_K", default=5, cast=int)
    SEARCH_MIN_SIMILARITY: float = config("SEARCH_MIN_SIMILARITY", default=0.7, cast=float)

    TITLE_MATCH_THRESHOLD: float = config("TITLE_MATCH_THRESHOLD", default=0.35, cast=float)
    DIRECTIVE_RESOLUTION_STRATEGY: str = config("DIRECTIVE_RESOLUTION_STRATEGY", default="full_overview")

    DOCUMENT_CONTEXT_CHAR_BUDGET: int = config("DOCUMENT_CONTEXT_CHAR_BUDGET", default=3000, cast=int)
    OVERVIEW_DOCUMENT_LIMIT: int = config("OVERVIEW_DOCUMENT_LIMIT", default=10, cast=int)
    SUMMARY_SNIPPET_CHARS: int = config("SUMMARY_SNIPPET_CHARS", default=200, cast=int)

    PDFTOTEXT_BINARY: str = config("PDFTOTEXT_BINARY", default="pdftotext")


class LoggingSettings(BaseSettings):
    """Centralized logging configuration settings."""

    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")
    LOG_FORMAT: str = config("LOG_FORMAT", default="structured")  # "simple", "detailed", "structured", "json"

    LOG_CONSOLE_ENABLED: bool = config("LOG_CONSOLE_ENABLED", default=True, cast=bool)
    LOG_FILE_ENABLED: bool = config("LOG_FILE_ENABLED", default=False, cast=bool)
    LOG_FILE_PATH: str = config("LOG_FILE_PATH", default="logs/studyrag.log")
    LOG_FILE_MAX_SIZE: int = config("LOG_FILE_MAX_SIZE", default=10485760, cast=int)
    LOG_FILE_BACKUP_COUNT: int = config("LOG_FILE_BACKUP_COUNT", default=5, cast=int)

    LOG_DEVELOPMENT_VERBOSE: bool = config("LOG_DEVELOPMENT_VERBOSE", default=True, cast=bool)
    LOG_PRODUCTION_OPTIMIZE: bool = config("LOG_PRODUCTION_OPTIMIZE", default=True, cast=bool)

    @property
    def LOG_LEVEL_INT(self) -> int:
        """Convert string log level to integer."""
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return level_map.get(self.LOG_LEVEL.upper(), logging.INFO)


class Settings(
    EnvironmentSettings,
    DatabaseSettings,
    EmbeddingSettings,
    LLMSettings,
    RAGSettings,
    LoggingSettings,
):
    """Main settings class that combines all setting categories."""

    pass


settings = Settings()


def get_settings() -> Settings:
    """Get application settings.

    Returns:
        The application settings.
    """
    return settings
