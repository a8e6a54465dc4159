"""Centralized logging for the study assistant pipeline.

Every module obtains its logger through ``get_logger`` so that the root logger
is configured exactly once from application settings, whatever entry point
(script, worker, test) touches the pipeline first.

Pipeline code reports degradations with structured context rather than
formatted strings:

    ```python
    from ...infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.warning(
        "Semantic search failed, continuing without hits",
        extra={"student_id": student_id, "step": "search"},
    )
    ```
"""

from .config import configure_testing_logging, setup_logging_configuration
from .factory import configure_logging, get_logger

__all__ = [
    "get_logger",
    "configure_logging",
    "configure_testing_logging",
    "setup_logging_configuration",
]
