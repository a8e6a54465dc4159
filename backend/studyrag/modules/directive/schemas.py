"""Schemas for document directives and resolved document contexts."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DirectiveAction(str, Enum):
    SUMMARIZE = "summarize"
    USE = "use"


class ResolutionStrategy(str, Enum):
    """How a directive picks documents.

    FULL_OVERVIEW hands the model every recent document and lets it choose
    from the overview; QUERY_MATCH fuzzy-matches titles against the document
    named in the utterance.
    """

    FULL_OVERVIEW = "full_overview"
    QUERY_MATCH = "query_match"


class ContextSource(str, Enum):
    SEMANTIC = "semantic"
    DIRECTIVE = "directive"


@dataclass
class Directive:
    """A request to summarize or use a particular document.

    ``target_query`` is the document reference found in the utterance, e.g.
    ``"fisica"`` for "Resume el documento de física", when one was found.
    """

    action: DirectiveAction
    target_query: Optional[str] = None


@dataclass
class DocumentContext:
    """Document content placed in the model's instructions."""

    title: str
    content: str
    source: ContextSource
    document_id: Optional[int] = None
    summary: Optional[str] = None
