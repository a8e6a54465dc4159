"""Resolve a directive into the documents whose content the model receives."""

import re
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ...infrastructure.logging import get_logger
from ..chunk.schemas import ChunkRead
from ..chunk.services import ChunkService
from ..document.schemas import DocumentRead
from ..document.services import DocumentService
from ..extraction.normalizer import normalize_query
from .schemas import ContextSource, Directive, DocumentContext, ResolutionStrategy

logger = get_logger(__name__)

CONTAINMENT_BASE = 0.6
CONTAINMENT_WEIGHT = 0.4
PREFIX_BONUS = 0.15

STOPWORDS = frozenset(
    {"a", "al", "con", "de", "del", "el", "en", "la", "las", "lo", "los", "mi", "mis",
     "para", "por", "sobre", "su", "sus", "un", "una", "y", "the", "of", "on", "my"}
)

_TOKEN = re.compile(r"\w+")


def _tokens(text: str) -> List[str]:
    return [token for token in _TOKEN.findall(text) if token not in STOPWORDS]


def title_match_score(query: str, title: str) -> float:
    """Score how well ``title`` matches a document reference, in [0, 1].

    Both sides are accent-stripped and lowercased. If one contains the other,
    the score is 0.6 plus 0.4 times the length ratio of the shorter to the
    longer. Otherwise it is the share of query tokens present in the title,
    plus 0.15 when the title starts with the first query token.
    """
    q = normalize_query(query)
    t = normalize_query(title)
    if not q or not t:
        return 0.0

    if q in t or t in q:
        shorter, longer = sorted((len(q), len(t)))
        return CONTAINMENT_BASE + CONTAINMENT_WEIGHT * shorter / longer

    query_tokens = _tokens(q)
    title_tokens = _tokens(t)
    if not query_tokens or not title_tokens:
        return 0.0

    title_token_set = set(title_tokens)
    overlap = sum(1 for token in query_tokens if token in title_token_set) / len(query_tokens)
    bonus = PREFIX_BONUS if title_tokens[0].startswith(query_tokens[0]) else 0.0

    return min(1.0, overlap + bonus)


def budget_content(chunks: Sequence[ChunkRead], char_budget: int) -> str:
    """Join chunks in ordinal order with blank lines, cut at ``char_budget``.

    The result is always a prefix of the full ordered join: the chunk that
    crosses the budget is truncated, and no later chunk is included.
    """
    ordered = sorted(chunks, key=lambda chunk: chunk.ordinal_index)
    parts: List[str] = []
    used = 0

    for chunk in ordered:
        piece = chunk.content if not parts else "\n\n" + chunk.content
        remaining = char_budget - used
        if remaining <= 0:
            break
        if len(piece) > remaining:
            parts.append(piece[:remaining])
            used = char_budget
            break
        parts.append(piece)
        used += len(piece)

    return "".join(parts)


class DocumentResolver:
    """Turn a directive into budgeted document contexts.

    Args:
        document_service: Source of the student's recent documents
        chunk_service: Source of each document's ordered chunks
        strategy: How documents are picked
        title_match_threshold: Minimum ``title_match_score`` under QUERY_MATCH
        char_budget: Maximum characters of content per document
        document_limit: How many recent documents are considered
    """

    def __init__(
        self,
        document_service: DocumentService,
        chunk_service: ChunkService,
        strategy: ResolutionStrategy = ResolutionStrategy.FULL_OVERVIEW,
        title_match_threshold: float = 0.35,
        char_budget: int = 3000,
        document_limit: int = 10,
    ):
        self.document_service = document_service
        self.chunk_service = chunk_service
        self.strategy = strategy
        self.title_match_threshold = title_match_threshold
        self.char_budget = char_budget
        self.document_limit = document_limit

    async def resolve(
        self,
        student_id: str,
        directive: Directive,
        db: AsyncSession,
        documents: Optional[List[DocumentRead]] = None,
    ) -> List[DocumentContext]:
        """Pick documents for ``directive`` and load their budgeted content.

        Args:
            student_id: Owner of the documents
            directive: The detected directive
            db: Database session
            documents: Already-loaded recent documents, to avoid a second query

        Returns:
            Contexts in the order documents were selected
        """
        if documents is None:
            documents = await self.document_service.list_recent_documents(student_id, db, limit=self.document_limit)

        selected = self.select_documents(directive, documents)

        contexts = []
        for document in selected:
            chunks = await self.chunk_service.get_chunks_by_document(document.id, db)
            contexts.append(
                DocumentContext(
                    document_id=document.id,
                    title=document.title,
                    summary=document.summary,
                    content=budget_content(chunks, self.char_budget),
                    source=ContextSource.DIRECTIVE,
                )
            )

        logger.info(
            "Resolved directive documents",
            extra={
                "student_id": student_id,
                "action": directive.action.value,
                "strategy": self.strategy.value,
                "candidates": len(documents),
                "selected": len(contexts),
            },
        )
        return contexts

    def select_documents(self, directive: Directive, documents: List[DocumentRead]) -> List[DocumentRead]:
        if self.strategy == ResolutionStrategy.FULL_OVERVIEW or not directive.target_query:
            return list(documents)

        scored: List[Tuple[float, DocumentRead]] = []
        for document in documents:
            score = title_match_score(directive.target_query, document.title)
            if score >= self.title_match_threshold:
                scored.append((score, document))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [document for _, document in scored]
