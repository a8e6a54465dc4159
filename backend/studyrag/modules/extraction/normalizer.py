"""Text normalization for stored content and for matching user input."""

import re
import unicodedata

_CRLF = re.compile(r"\r\n?")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_HORIZONTAL_RUNS = re.compile(r"[ \t]{2,}")
_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Normalize extracted document text.

    Line endings become ``\\n``, runs of three or more newlines become a single
    blank line, and runs of spaces or tabs collapse to one space. Blank lines
    are kept: the chunker splits paragraphs on them.
    """
    text = _CRLF.sub("\n", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _HORIZONTAL_RUNS.sub(" ", text)
    return text.strip()


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_query(text: str) -> str:
    """Lowercase, drop diacritics and collapse whitespace.

    ``"  Resúmeme   el TEMA "`` becomes ``"resumeme el tema"``.
    """
    return _WHITESPACE.sub(" ", strip_accents(text).lower()).strip()
