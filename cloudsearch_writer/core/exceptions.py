"""Exception hierarchy for the Cloud Search index writer."""

from __future__ import annotations

from typing import Any, Dict, Optional


class IndexWriterError(Exception):
    """Base class for writer errors with an optional structured payload."""

    code: str = "index_writer_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} :: {self.details}"
        return self.message


class ConfigurationError(IndexWriterError):
    """Missing or invalid configuration; fatal to ``open()``."""

    code = "configuration_error"


class InvalidUploadFormatError(ConfigurationError):
    code = "invalid_upload_format"


class ClientCreationError(IndexWriterError):
    """The backend indexing client could not be constructed."""

    code = "client_creation_error"


class IndexingServiceError(IndexWriterError):
    """Raised by the backend client when a request cannot be served."""

    code = "indexing_service_error"


class DocumentError(IndexWriterError):
    """A single document is unusable; the caller decides whether to continue."""

    code = "document_error"


class ValidationError(DocumentError):
    code = "validation_error"


class ContentTypeMissingError(DocumentError):
    code = "content_type_missing"


class ContentDecodeError(DocumentError):
    code = "content_decode_error"


class ContentMissingError(DocumentError):
    code = "content_missing"


__all__ = [
    "ClientCreationError",
    "ConfigurationError",
    "ContentDecodeError",
    "ContentMissingError",
    "ContentTypeMissingError",
    "DocumentError",
    "IndexWriterError",
    "IndexingServiceError",
    "InvalidUploadFormatError",
    "ValidationError",
]
