"""
Optical-Assist Error Types

Every error raised across the ingestion and answering pipelines derives from
ServiceError, which carries the HTTP status and the message that is safe to
show to a caller. Internal details stay on the exception for operator logs.
"""

from typing import Any


class ServiceError(Exception):
    """Base class for errors with a caller-facing status and message."""

    status_code: int = 500
    public_message: str = "Something went wrong."

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.public_message
        self.details = details or {}
        super().__init__(self.message)


# ============================================
# Caller errors (4xx)
# ============================================


class ValidationError(ServiceError):
    """A required field is missing or malformed."""

    status_code = 400
    public_message = "Invalid request"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        # Validation messages describe the caller's own input
        self.public_message = self.message


class DuplicateDocumentError(ServiceError):
    status_code = 400
    public_message = "File already uploaded"


class EmptyDocumentError(ServiceError):
    status_code = 400
    public_message = "PDF contains no readable text"


class UnsupportedFileError(ServiceError):
    status_code = 400
    public_message = "Only PDF files are supported"


class FileTooLargeError(UnsupportedFileError):
    status_code = 413
    public_message = "File exceeds the maximum upload size"


class Unauthorized(ServiceError):
    status_code = 403
    public_message = "Unauthorized: Invalid Admin Key"


class DocumentNotFoundError(ServiceError):
    status_code = 404
    public_message = "Document not found"


# ============================================
# Upstream and storage errors (5xx)
# ============================================


class EmbeddingError(ServiceError):
    """The embedding model call failed (network, timeout, quota, bad shape)."""

    status_code = 502
    public_message = "Embedding service unavailable"


class CompletionError(ServiceError):
    """The completion model call failed or returned nothing."""

    status_code = 502
    public_message = "Language model unavailable"


class StorageError(ServiceError):
    """A database operation failed."""

    status_code = 500
    public_message = "Storage failure"
