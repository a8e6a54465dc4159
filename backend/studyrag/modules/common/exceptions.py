"""Domain exception classes for pipeline errors."""


class DomainError(Exception):
    """Base class for all domain-specific errors."""

    pass


class ResourceNotFoundError(DomainError):
    """Raised when a requested resource cannot be found."""

    pass


class DocumentNotFoundError(ResourceNotFoundError):
    """Raised when a document id does not exist."""

    pass


class UnsupportedFormatError(DomainError):
    """Raised when an uploaded file's extension is not one we can extract."""

    def __init__(self, file_name: str, supported: list[str] | None = None):
        self.file_name = file_name
        self.supported = supported or []
        message = f"Unsupported file type: {file_name}"
        if self.supported:
            message += f" (supported: {', '.join(self.supported)})"
        super().__init__(message)


class ExtractionFailedError(DomainError):
    """Raised when a converter cannot turn a supported file into text."""

    pass


class EmbeddingFailedError(DomainError):
    """Raised when the embedding provider errors or returns unusable vectors."""

    pass


class DimensionMismatchError(DomainError):
    """Raised when two vectors of different length are compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vectors must have the same dimensions ({left} != {right})")


class StoreUnavailableError(DomainError):
    """Raised when every ranking strategy failed to reach the store."""

    pass


class CompletionFailedError(DomainError):
    """Raised when the language model call fails or returns no content."""

    pass
