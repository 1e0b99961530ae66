"""Content payload selection for the configured upload format."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cloudsearch_writer.core.exceptions import (
    ContentDecodeError,
    ContentMissingError,
    ContentTypeMissingError,
)
from cloudsearch_writer.integrations.base import ContentFormat
from cloudsearch_writer.models.document import (
    FIELD_CONTENT_TYPE,
    FIELD_RAW_CONTENT,
    FIELD_TEXT_CONTENT,
    CrawlDocument,
)


class UploadFormat(str, Enum):
    """Which document field supplies the payload."""

    RAW = "RAW"
    TEXT = "TEXT"

    @property
    def content_format(self) -> ContentFormat:
        return ContentFormat.RAW if self is UploadFormat.RAW else ContentFormat.TEXT

    @classmethod
    def parse(cls, value: Optional[str]) -> "UploadFormat":
        """Case-insensitive lookup; ``None`` selects RAW. Raises ``ValueError``."""

        if value is None:
            return cls.RAW
        return cls(value.strip().upper())


@dataclass(frozen=True)
class ContentPayload:
    data: bytes
    mime_type: str
    upload_format: UploadFormat
    length: Optional[int] = None

    def __post_init__(self) -> None:
        if self.length is None:
            object.__setattr__(self, "length", len(self.data))


def require_content_type(document: CrawlDocument) -> str:
    content_type = document.get_text(FIELD_CONTENT_TYPE)
    if not content_type:
        raise ContentTypeMissingError(
            f"ContentType ('{FIELD_CONTENT_TYPE}') field is missing, please enable the index-more plugin!"
        )
    return content_type


def select_content(
    document: CrawlDocument,
    upload_format: UploadFormat,
    content_type: Optional[str] = None,
) -> ContentPayload:
    content_type = content_type or require_content_type(document)

    if upload_format is UploadFormat.RAW:
        encoded = document.get_field_value(FIELD_RAW_CONTENT)
        try:
            if encoded is None:
                raise ValueError("missing")
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise ContentDecodeError(
                f"Error: {FIELD_RAW_CONTENT} not available or not Base64 encoded. Please add"
                ' "-addBinaryContent -base64" to the crawler\'s index command-line arguments!'
            ) from exc
        return ContentPayload(data=data, mime_type=content_type, upload_format=upload_format)

    text = document.get_field_value(FIELD_TEXT_CONTENT)
    if text is None:
        raise ContentMissingError(
            f"Text content ('{FIELD_TEXT_CONTENT}') field is missing, please enable the index-basic plugin!"
        )
    data = text if isinstance(text, bytes) else text.encode("utf-8")
    return ContentPayload(data=data, mime_type=content_type, upload_format=upload_format)
