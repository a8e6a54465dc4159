"""Split normalized document text into bounded-size chunks."""

import re
from typing import Iterable, List

from ...infrastructure.logging import get_logger

logger = get_logger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)|[.!?]+")


class TextChunker:
    """Paragraph-first chunking with a sentence-level fallback.

    Pieces (paragraphs, or sentences in the fallback) are accumulated into a
    buffer; the buffer is flushed when adding the next piece and its separator
    would exceed ``target_size`` and the buffer is non-empty. A single piece is
    never cut, so a chunk can exceed ``target_size`` when one paragraph or
    sentence does.

    The sentence strategy replaces the paragraph result when the latter is
    empty or contains a chunk of at least twice ``target_size``.

    Args:
        target_size: Soft upper bound on chunk length, in characters
    """

    def __init__(self, target_size: int = 1000):
        if target_size < 1:
            raise ValueError("target_size must be positive")
        self.target_size = target_size

    def split(self, text: str) -> List[str]:
        """Return chunks in text order; empty only for blank input."""
        stripped = text.strip()
        if not stripped:
            return []

        chunks = self.split_paragraphs(stripped)

        if not chunks or any(len(chunk) >= 2 * self.target_size for chunk in chunks):
            logger.debug(
                "Falling back to sentence chunking",
                extra={"target_size": self.target_size, "paragraph_chunks": len(chunks)},
            )
            chunks = self.split_sentences(stripped)

        return chunks or [stripped]

    def split_paragraphs(self, text: str) -> List[str]:
        paragraphs = (paragraph.strip() for paragraph in _PARAGRAPH_BREAK.split(text))
        return self._accumulate(paragraphs, PARAGRAPH_SEPARATOR)

    def split_sentences(self, text: str) -> List[str]:
        """Split after runs of ``.``, ``!`` or ``?``, keeping the terminators."""
        sentences = (match.group(0).strip() for match in _SENTENCE.finditer(text))
        return self._accumulate(sentences, SENTENCE_SEPARATOR)

    def _accumulate(self, pieces: Iterable[str], separator: str) -> List[str]:
        chunks: List[str] = []
        buffer = ""

        for piece in pieces:
            if not piece:
                continue

            if buffer and len(buffer) + len(separator) + len(piece) > self.target_size:
                chunks.append(buffer)
                buffer = piece
            else:
                buffer = f"{buffer}{separator}{piece}" if buffer else piece

        if buffer:
            chunks.append(buffer)

        return chunks
