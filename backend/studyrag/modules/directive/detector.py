"""Detect summarize/use directives in a student's message."""

import re
from typing import Optional

from ..extraction.normalizer import normalize_query
from .schemas import Directive, DirectiveAction

SUMMARIZE_PATTERN = re.compile(r"\b(?:resum\w*|summari[sz]\w*)\b")

USE_PATTERN = re.compile(
    r"\b(?:"
    r"usa|usar|usando|use|using"
    r"|utiliz\w*|utilis\w*"
    r"|consult\w*"
    r"|bas(?:a|e|ate|andote|ado|ada|ar)\s+en"
    r"|based\s+on"
    r")\b"
)

TARGET_PATTERN = re.compile(
    r"\b(?:documento|archivo|apuntes|notas|pdf|document|file|notes)\s+"
    r"(?:de\s+la|de\s+los|de\s+las|del|de|sobre|acerca\s+de|llamado|titulado|about|on|called)\s+"
    r"(?P<target>[^?!.,;]+)"
)

TRAILING_FILLER = re.compile(r"\s+(?:por\s+favor|please)$")


def detect_directive(message: str) -> Optional[Directive]:
    """Classify a message as a summarize or use directive, or neither.

    Matching ignores case and accents. When both families match, summarize
    wins.

    Examples:
        "Resume el documento de física" -> summarize, target "fisica"
        "Usa el archivo de notas" -> use
        "¿Qué es la fotosíntesis?" -> None
    """
    normalized = normalize_query(message)
    if not normalized:
        return None

    if SUMMARIZE_PATTERN.search(normalized):
        action = DirectiveAction.SUMMARIZE
    elif USE_PATTERN.search(normalized):
        action = DirectiveAction.USE
    else:
        return None

    return Directive(action=action, target_query=extract_target(normalized))


def extract_target(normalized: str) -> Optional[str]:
    """Return the document reference after "documento de", "archivo sobre"..."""
    match = TARGET_PATTERN.search(normalized)
    if match is None:
        return None

    target = TRAILING_FILLER.sub("", match.group("target").strip())
    return target or None
