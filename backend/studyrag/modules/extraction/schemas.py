"""Schemas for text extraction."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ..common.exceptions import ExtractionFailedError


class RawDocument(BaseModel):
    """An uploaded file, given either as a path on disk or as raw bytes."""

    file_name: str = Field(min_length=1)
    path: Optional[Path] = None
    content: Optional[bytes] = None

    @model_validator(mode="after")
    def check_source(self) -> "RawDocument":
        if self.path is None and self.content is None:
            raise ValueError("Either path or content must be provided")
        return self

    @property
    def extension(self) -> str:
        return Path(self.file_name).suffix.lower()

    @property
    def base_name(self) -> str:
        return Path(self.file_name).stem

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ExtractionFailedError(f"{self.file_name} has neither content nor a path")
        return self.path.read_bytes()


class ExtractedText(BaseModel):
    """Normalized text of an uploaded file.

    Attributes:
        title: First short content line, or the file's base name.
        text: Normalized text, ready for chunking.
        method: Name of the strategy that produced the text.
        degraded: True when the text is a placeholder rather than file content.
    """

    title: str
    text: str
    method: str
    degraded: bool = False
