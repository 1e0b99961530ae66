"""Map a crawled document onto a Cloud Search item."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from cloudsearch_writer.core.config import SdkConfiguration
from cloudsearch_writer.core.exceptions import ConfigurationError, ValidationError
from cloudsearch_writer.indexing.structured_data import StructuredDataRegistry, parse_timestamp
from cloudsearch_writer.models.document import (
    FIELD_ID,
    FIELD_LAST_MODIFIED,
    FIELD_TITLE,
    FIELD_URL,
    CrawlDocument,
)
from cloudsearch_writer.models.item import Item, ItemMetadata, ItemType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldOrValue:
    """Where a metadata attribute comes from: a document field, else a fixed value."""

    field: Optional[str] = None
    default: Optional[str] = None

    def resolve(self, document: CrawlDocument) -> Optional[str]:
        if self.field:
            value = document.get_text(self.field)
            if value:
                return value
        return self.default or None


def _first_of(document: CrawlDocument, sources: Sequence[FieldOrValue]) -> Optional[str]:
    for source in sources:
        value = source.resolve(document)
        if value:
            return value
    return None


def _as_timestamp(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        logger.warning("Dropping unparseable timestamp %r: %s", value, exc)
        return None


class ItemBuilder:
    """Build `Item`s from documents using the connector's metadata mapping.

    Title and update time first look at the crawler's own ``title`` and
    ``lastModified`` fields; the ``itemMetadata.*`` configuration is consulted
    only when the document leaves them empty.
    """

    def __init__(self, config: SdkConfiguration, structured_data: StructuredDataRegistry) -> None:
        self.structured_data = structured_data
        self.object_type = config.object_type
        self.title_sources = (
            FieldOrValue(field=FIELD_TITLE),
            FieldOrValue(field=config.title_field, default=config.title_default),
        )
        self.update_time_sources = (
            FieldOrValue(field=FIELD_LAST_MODIFIED),
            FieldOrValue(field=config.update_time_field, default=config.update_time_default),
        )
        self.create_time_sources = (FieldOrValue(field=config.create_time_field, default=config.create_time_default),)
        self.content_language_sources = (
            FieldOrValue(field=config.content_language_field, default=config.content_language_default),
        )

        if self.object_type and structured_data.is_initialized() and not structured_data.has_object(self.object_type):
            raise ConfigurationError(
                f"Object type '{self.object_type}' from itemMetadata.objectType is not defined in the data source schema"
            )

    def build(self, document: CrawlDocument, content_type: str) -> Item:
        item_id = document.get_text(FIELD_ID)
        if not item_id:
            raise ValidationError(f"Document has no '{FIELD_ID}' field", details={"url": document.get_text(FIELD_URL)})

        metadata = ItemMetadata(
            title=_first_of(document, self.title_sources),
            mime_type=content_type,
            source_repository_url=document.get_text(FIELD_URL),
            content_language=_first_of(document, self.content_language_sources),
            create_time=_as_timestamp(_first_of(document, self.create_time_sources)),
            update_time=_as_timestamp(_first_of(document, self.update_time_sources)),
            object_type=self.object_type,
        )

        item = Item(name=item_id, item_type=ItemType.CONTENT_ITEM, metadata=metadata)
        if self.object_type:
            item.structured_data = self.structured_data.build(self.object_type, document)
        return item
