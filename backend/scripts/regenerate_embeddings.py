"""Script to re-embed every stored chunk with the configured embedding model.

Run after changing EMBEDDING_PROVIDER or EMBEDDING_MODEL so that stored
vectors and query vectors share a dimension again.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from studyrag.infrastructure.config.settings import get_settings  # noqa: E402
from studyrag.infrastructure.database.session import local_session  # noqa: E402
from studyrag.infrastructure.embedding import create_embedding_service  # noqa: E402
from studyrag.infrastructure.logging import get_logger  # noqa: E402
from studyrag.modules.assistant.services import EmbeddingMaintenanceService  # noqa: E402
from studyrag.modules.chunk.services import ChunkService  # noqa: E402
from studyrag.modules.document.services import DocumentService  # noqa: E402

logger = get_logger(__name__)


async def main() -> None:
    """Regenerate all embeddings and print coverage before and after."""
    settings = get_settings()
    service = EmbeddingMaintenanceService(
        document_service=DocumentService(),
        chunk_service=ChunkService(),
        embedding_service=create_embedding_service(settings),
    )

    async with local_session() as db:
        before = await service.get_embedding_stats(db)
        logger.info(f"Coverage before: {before.coverage_percentage}% of {before.total_chunks} chunks")

        report = await service.regenerate_all_embeddings(db)

        after = await service.get_embedding_stats(db)
        logger.info(f"Coverage after: {after.coverage_percentage}% of {after.total_chunks} chunks")

    if report.failed_document_ids:
        logger.error(f"Failed documents: {report.failed_document_ids}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
