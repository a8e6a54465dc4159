"""Explicit success/failure results for ordered fallback strategies.

Several pipeline steps try one approach and fall back to another: PDF text
extraction (``pdftotext`` → byte scan → placeholder) and similarity ranking
(pgvector → in-process cosine). Each approach is a strategy returning a
``StrategyResult``; a ``FallbackChain`` runs them in order and stops at the
first success, keeping every failure for logging and tests.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from ...infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class EnrichmentStep(str, Enum):
    """Non-essential steps whose failure degrades, but never blocks, an operation."""

    EXTRACTION = "extraction"
    SUMMARY = "summary"
    EMBEDDING = "embedding"
    QUERY_EMBEDDING = "query_embedding"
    SEARCH = "search"
    OVERVIEW = "overview"
    RESOLUTION = "resolution"


@dataclass
class StrategyResult(Generic[T]):
    """Outcome of a single strategy attempt."""

    strategy: str
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, strategy: str, value: T) -> "StrategyResult[T]":
        return cls(strategy=strategy, value=value)

    @classmethod
    def failure(cls, strategy: str, error: BaseException) -> "StrategyResult[T]":
        return cls(strategy=strategy, error=error)


@dataclass
class ChainOutcome(Generic[T]):
    """Result of running a fallback chain.

    Attributes:
        result: The first successful attempt, or None when all failed.
        attempts: Every attempt in the order it was made.
    """

    result: Optional[StrategyResult[T]]
    attempts: list[StrategyResult[T]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result is not None

    @property
    def value(self) -> Optional[T]:
        return self.result.value if self.result is not None else None

    @property
    def strategy(self) -> Optional[str]:
        return self.result.strategy if self.result is not None else None

    @property
    def fell_back(self) -> bool:
        """True when at least one earlier strategy failed before the winner."""
        return any(not attempt.ok for attempt in self.attempts)

    @property
    def errors(self) -> list[BaseException]:
        return [attempt.error for attempt in self.attempts if attempt.error is not None]


Strategy = Callable[[], Awaitable[StrategyResult[T]]]


class FallbackChain(Generic[T]):
    """Run strategies in order until one succeeds.

    A strategy either returns a ``StrategyResult`` or raises; a raised
    exception is recorded as a failure for that strategy and the chain moves on.

    Example:
        ```python
        chain = FallbackChain("pdf_extraction", [
            ("pdftotext", run_pdftotext),
            ("byte_scan", run_byte_scan),
        ])
        outcome = await chain.run()
        if outcome.ok:
            text = outcome.value
        ```
    """

    def __init__(self, name: str, strategies: Sequence[tuple[str, Strategy[T]]]):
        self.name = name
        self.strategies = list(strategies)

    async def run(self) -> ChainOutcome[T]:
        attempts: list[StrategyResult[T]] = []

        for strategy_name, strategy in self.strategies:
            try:
                attempt = await strategy()
            except Exception as e:
                attempt = StrategyResult.failure(strategy_name, e)

            attempts.append(attempt)

            if attempt.ok:
                return ChainOutcome(result=attempt, attempts=attempts)

            logger.warning(
                f"{self.name}: strategy {strategy_name} failed, trying next",
                extra={"chain": self.name, "strategy": strategy_name, "error": str(attempt.error)},
            )

        return ChainOutcome(result=None, attempts=attempts)
