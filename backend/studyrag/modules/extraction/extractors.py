"""Per-format text extractors.

DOCX and TXT either succeed or raise ``ExtractionFailedError``. PDF runs an
ordered list of strategies and always ends in a placeholder, so an unreadable
PDF still produces a document.
"""

import asyncio
import io
import re
from typing import List

import docx
from pypdf import PdfReader

from ...infrastructure.logging import get_logger
from ..common.exceptions import ExtractionFailedError
from ..common.results import FallbackChain, StrategyResult
from .schemas import RawDocument

logger = get_logger(__name__)

PLACEHOLDER_PREFIX = "Documento PDF sin texto extraíble:"

_TEXT_BLOCK = re.compile(r"BT\s*(.*?)ET", re.DOTALL)
_PAREN_TOKEN = re.compile(r"\((.*?)\)", re.DOTALL)
_BRACKET_TOKEN = re.compile(r"\[(.*?)\]", re.DOTALL)
_NON_PRINTABLE = re.compile(r"[^\x20-\x7e\xa0-\xff\n\t]")


def placeholder_text(file_name: str) -> str:
    return (
        f"{PLACEHOLDER_PREFIX} {file_name}. "
        "El contenido no pudo ser extraído, pero el documento está disponible para consulta."
    )


def is_placeholder_text(text: str) -> bool:
    """True if ``text`` is the fixed stand-in for an unreadable PDF."""
    return text.startswith(PLACEHOLDER_PREFIX)


async def extract_txt(raw: RawDocument) -> str:
    try:
        data = await asyncio.to_thread(raw.read_bytes)
        return data.decode("utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ExtractionFailedError(f"Could not read text file {raw.file_name}: {e}") from e


def _read_docx(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    paragraphs = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]

    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                paragraphs.append(" | ".join(cells))

    return "\n\n".join(paragraphs)


async def extract_docx(raw: RawDocument) -> str:
    try:
        data = await asyncio.to_thread(raw.read_bytes)
        return await asyncio.to_thread(_read_docx, data)
    except Exception as e:
        raise ExtractionFailedError(f"Could not convert DOCX {raw.file_name}: {e}") from e


class PdfExtractor:
    """PDF text extraction with ordered fallbacks.

    Strategies, in order:
    1. ``pdftotext`` (poppler-utils), when the binary is installed
    2. ``pypdf``, which decodes compressed content streams in-process
    3. a scan of the raw bytes for string operands inside ``BT ... ET`` text
       objects, which recovers text from simple uncompressed PDFs
    4. a fixed placeholder naming the file

    Args:
        pdftotext_binary: Name or path of the pdftotext executable
    """

    PDFTOTEXT = "pdftotext"
    PYPDF = "pypdf"
    BYTE_SCAN = "byte_scan"
    PLACEHOLDER = "placeholder"

    def __init__(self, pdftotext_binary: str = "pdftotext"):
        self.pdftotext_binary = pdftotext_binary

    async def extract(self, raw: RawDocument) -> StrategyResult[str]:
        chain: FallbackChain[str] = FallbackChain(
            "pdf_extraction",
            [
                (self.PDFTOTEXT, lambda: self._run_pdftotext(raw)),
                (self.PYPDF, lambda: self._read_with_pypdf(raw)),
                (self.BYTE_SCAN, lambda: self._scan_bytes(raw)),
            ],
        )
        outcome = await chain.run()

        if outcome.result is not None:
            return outcome.result

        logger.warning(
            "No text recovered from PDF, storing placeholder",
            extra={"file_name": raw.file_name, "attempts": [attempt.strategy for attempt in outcome.attempts]},
        )
        return StrategyResult.success(self.PLACEHOLDER, placeholder_text(raw.file_name))

    async def _run_pdftotext(self, raw: RawDocument) -> StrategyResult[str]:
        if raw.path is not None:
            args = [str(raw.path), "-"]
            stdin_data = None
        else:
            args = ["-", "-"]
            stdin_data = raw.read_bytes()

        process = await asyncio.create_subprocess_exec(
            self.pdftotext_binary,
            *args,
            stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate(stdin_data)

        if process.returncode != 0:
            raise ExtractionFailedError(
                f"pdftotext exited with {process.returncode}: {stderr.decode('utf-8', errors='replace').strip()}"
            )

        text = stdout.decode("utf-8", errors="replace").strip()
        if not text:
            raise ExtractionFailedError("pdftotext produced no text")

        return StrategyResult.success(self.PDFTOTEXT, text)

    async def _read_with_pypdf(self, raw: RawDocument) -> StrategyResult[str]:
        data = await asyncio.to_thread(raw.read_bytes)
        text = await asyncio.to_thread(read_pdf_pages, data)
        if not text:
            raise ExtractionFailedError("pypdf found no text in any page")
        return StrategyResult.success(self.PYPDF, text)

    async def _scan_bytes(self, raw: RawDocument) -> StrategyResult[str]:
        data = await asyncio.to_thread(raw.read_bytes)
        text = scan_pdf_text_blocks(data)
        if not text:
            raise ExtractionFailedError("No text operands found in PDF content streams")
        return StrategyResult.success(self.BYTE_SCAN, text)


def read_pdf_pages(data: bytes) -> str:
    """Text of every page that has any, one page per paragraph."""
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page in reader.pages:
        page_text = (page.extract_text() or "").strip()
        if page_text:
            pages.append(page_text)
    return "\n\n".join(pages)


def scan_pdf_text_blocks(data: bytes) -> str:
    """Collect the string operands of every ``BT ... ET`` block.

    Parenthesized strings are taken when a block has any, bracketed arrays
    otherwise. Non-printable characters are dropped.
    """
    content = data.decode("latin-1")
    pieces: List[str] = []

    for block in _TEXT_BLOCK.findall(content):
        tokens = _PAREN_TOKEN.findall(block) or _BRACKET_TOKEN.findall(block)
        for token in tokens:
            cleaned = _NON_PRINTABLE.sub("", token).strip()
            if cleaned:
                pieces.append(cleaned)

    return " ".join(pieces).strip()
