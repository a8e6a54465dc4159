"""Text extraction service dispatching on file extension."""

from pathlib import Path
from typing import Awaitable, Callable, Dict, List

from ...infrastructure.logging import get_logger
from ..common.exceptions import UnsupportedFormatError
from .extractors import PdfExtractor, extract_docx, extract_txt
from .normalizer import clean_text
from .schemas import ExtractedText, RawDocument

logger = get_logger(__name__)

TITLE_MAX_LENGTH = 100

SUPPORTED_FILE_TYPES: Dict[str, str] = {
    ".pdf": "PDF document",
    ".docx": "Word document",
    ".txt": "Plain text",
}


def supported_file_types() -> List[str]:
    return list(SUPPORTED_FILE_TYPES)


def is_supported(file_name: str) -> bool:
    """Check the file's extension, case-insensitively."""
    return Path(file_name).suffix.lower() in SUPPORTED_FILE_TYPES


def extract_title(file_name: str, text: str) -> str:
    """Pick a display title for a document.

    The first non-empty line wins when it is shorter than 100 characters;
    otherwise the file name without its extension is used.
    """
    base_title = Path(file_name).stem

    for line in text.split("\n"):
        if line.strip():
            if len(line) < TITLE_MAX_LENGTH:
                return line.strip()
            break

    return base_title


class TextExtractor:
    """Turn an uploaded file into normalized text and a title.

    Args:
        pdftotext_binary: pdftotext executable used as the first PDF strategy
    """

    def __init__(self, pdftotext_binary: str = "pdftotext"):
        self.pdf_extractor = PdfExtractor(pdftotext_binary)
        self._plain_extractors: Dict[str, Callable[[RawDocument], Awaitable[str]]] = {
            ".docx": extract_docx,
            ".txt": extract_txt,
        }

    async def extract(self, raw: RawDocument) -> ExtractedText:
        """Extract, normalize and title an uploaded file.

        Raises:
            UnsupportedFormatError: If the extension is not .pdf, .docx or .txt
            ExtractionFailedError: If a DOCX or TXT file cannot be read
        """
        extension = raw.extension
        if extension not in SUPPORTED_FILE_TYPES:
            raise UnsupportedFormatError(raw.file_name, supported_file_types())

        degraded = False
        if extension == ".pdf":
            result = await self.pdf_extractor.extract(raw)
            text = result.value or ""
            method = result.strategy
            degraded = method == PdfExtractor.PLACEHOLDER
        else:
            text = await self._plain_extractors[extension](raw)
            method = extension.lstrip(".")

        text = clean_text(text)
        title = raw.base_name if degraded else extract_title(raw.file_name, text)

        logger.info(
            "Extracted document text",
            extra={"file_name": raw.file_name, "method": method, "characters": len(text), "degraded": degraded},
        )

        return ExtractedText(title=title, text=text, method=method, degraded=degraded)
