"""Assemble the system instruction for one answer turn."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ...infrastructure.indexing.base import SimilarityHit
from ..directive.schemas import ContextSource, Directive, DirectiveAction, DocumentContext
from ..document.schemas import DocumentRead

SPANISH_MONTHS = ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sep", "oct", "nov", "dic")

NO_DATE_LABEL = "Sin fecha"
NO_SUMMARY_LABEL = "Sin resumen"
ELLIPSIS = "…"

BASE_PROMPT = """Eres un asistente de estudio inteligente y útil. Tu objetivo es ayudar a los estudiantes a comprender mejor sus materiales de estudio, responder preguntas académicas y proporcionar explicaciones claras.

Características de tu personalidad:
- Eres paciente y comprensivo
- Explicas conceptos de manera clara y accesible
- Proporcionas ejemplos cuando es útil
- Respondes en español de manera natural y amigable

Instrucciones:
- Si el estudiante hace una pregunta sobre un tema específico, proporciona una explicación completa pero concisa
- Si necesitas aclaración, haz preguntas de seguimiento
- Si hay documentos disponibles, úsalos como contexto para tus respuestas"""

OVERVIEW_HEADER = "DOCUMENTOS DEL ESTUDIANTE:"
CONTEXT_HEADER = "CONTEXTO RELEVANTE ENCONTRADO:"

CONTEXT_RULE = (
    "IMPORTANTE: Usa SOLO la información del contexto anterior para responder. Si la pregunta no se puede "
    "responder con el contexto proporcionado, indica que necesitas más información o que el estudiante suba "
    "documentos relevantes."
)

NO_DOCUMENTS_NOTE = (
    "NOTA: No hay documentos disponibles. Sugiere al estudiante que suba documentos relevantes para obtener "
    "ayuda más específica."
)

DIRECTIVE_INSTRUCTIONS = {
    DirectiveAction.SUMMARIZE: (
        "El estudiante pidió un resumen de uno de sus documentos. Elige de la lista de documentos el que mejor "
        "coincida con lo que pidió, indica por su título cuál elegiste y resume su contenido."
    ),
    DirectiveAction.USE: (
        "El estudiante pidió que uses uno de sus documentos. Elige de la lista de documentos el que mejor "
        "coincida con lo que pidió, indica por su título cuál elegiste y basa tu respuesta en su contenido."
    ),
}


def format_updated_label(updated_at: Optional[datetime]) -> str:
    """``datetime(2026, 10, 17)`` -> ``"17 oct 2026"``."""
    if updated_at is None:
        return NO_DATE_LABEL
    return f"{updated_at.day} {SPANISH_MONTHS[updated_at.month - 1]} {updated_at.year}"


def summary_snippet(summary: Optional[str], max_chars: int = 200) -> str:
    """Cut a summary to at most ``max_chars`` characters, ellipsis included."""
    if not summary or not summary.strip():
        return NO_SUMMARY_LABEL
    summary = summary.strip()
    if len(summary) <= max_chars:
        return summary
    return summary[: max_chars - len(ELLIPSIS)].rstrip() + ELLIPSIS


def hits_to_contexts(hits: Sequence[SimilarityHit]) -> List[DocumentContext]:
    return [
        DocumentContext(
            document_id=hit.document_id,
            title=hit.document_title,
            summary=f"Fragmento {hit.ordinal_index} (similitud: {hit.similarity_score * 100:.1f}%)",
            content=hit.content,
            source=ContextSource.SEMANTIC,
        )
        for hit in hits
    ]


def merge_contexts(
    directive_contexts: Sequence[DocumentContext],
    semantic_contexts: Sequence[DocumentContext],
) -> List[DocumentContext]:
    """Directive-resolved documents first, then semantic hits not already covered.

    A semantic hit is dropped when a resolved document has the same id, or,
    failing ids, the same title ignoring case.
    """
    merged = list(directive_contexts)
    resolved_ids = {context.document_id for context in directive_contexts if context.document_id is not None}
    resolved_titles = {context.title.strip().lower() for context in directive_contexts}

    for context in semantic_contexts:
        if context.document_id is not None and context.document_id in resolved_ids:
            continue
        if context.title.strip().lower() in resolved_titles:
            continue
        merged.append(context)

    return merged


@dataclass
class AssembledContext:
    """The pieces of one system instruction, kept for inspection and tests."""

    overview: str = ""
    directive_instruction: str = ""
    contexts: List[DocumentContext] = field(default_factory=list)
    system_prompt: str = ""


class ContextAssembler:
    """Build the system instruction sent ahead of the chat history.

    Args:
        snippet_chars: Maximum length of each summary in the overview
    """

    def __init__(self, snippet_chars: int = 200):
        self.snippet_chars = snippet_chars

    def build_overview(self, documents: Sequence[DocumentRead]) -> str:
        """One entry per document, numbered from 1; empty when there are none.

        Entry format::

            1. Apuntes de física (chunks: 4, actualizado: 17 oct 2026)
               Resumen: Leyes de Newton y ...
        """
        lines = []
        for index, document in enumerate(documents, start=1):
            lines.append(
                f"{index}. {document.title} (chunks: {document.chunk_count}, "
                f"actualizado: {format_updated_label(document.updated_at)})\n"
                f"   Resumen: {summary_snippet(document.summary, self.snippet_chars)}"
            )
        return "\n".join(lines)

    def directive_instruction(self, directive: Optional[Directive]) -> str:
        if directive is None:
            return ""
        return DIRECTIVE_INSTRUCTIONS[directive.action]

    def build_system_prompt(self, overview: str, directive_instruction: str, contexts: Sequence[DocumentContext]) -> str:
        sections = [BASE_PROMPT]

        if overview:
            sections.append(f"{OVERVIEW_HEADER}\n{overview}")

        if directive_instruction:
            sections.append(directive_instruction)

        if contexts:
            entries = []
            for index, context in enumerate(contexts, start=1):
                entry = f"{index}. Documento: {context.title}\n"
                if context.summary:
                    entry += f"   Info: {context.summary}\n"
                entry += f"   Contenido: {context.content}"
                entries.append(entry)
            sections.append(f"{CONTEXT_HEADER}\n" + "\n\n".join(entries))
            sections.append(CONTEXT_RULE)
        elif not overview:
            sections.append(NO_DOCUMENTS_NOTE)

        return "\n\n".join(sections)

    def assemble(
        self,
        documents: Sequence[DocumentRead],
        directive: Optional[Directive],
        directive_contexts: Sequence[DocumentContext],
        hits: Sequence[SimilarityHit],
    ) -> AssembledContext:
        overview = self.build_overview(documents)
        instruction = self.directive_instruction(directive)
        contexts = merge_contexts(directive_contexts, hits_to_contexts(hits))

        return AssembledContext(
            overview=overview,
            directive_instruction=instruction,
            contexts=contexts,
            system_prompt=self.build_system_prompt(overview, instruction, contexts),
        )
