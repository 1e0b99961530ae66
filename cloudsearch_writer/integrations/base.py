"""Interface of the backend indexing client consumed by the writer."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

from cloudsearch_writer.models.item import Item
from cloudsearch_writer.models.schema import Schema

if TYPE_CHECKING:  # pragma: no cover
    from cloudsearch_writer.indexing.content import ContentPayload


class ContentFormat(str, Enum):
    RAW = "RAW"
    TEXT = "TEXT"


class RequestMode(str, Enum):
    UNSPECIFIED = "UNSPECIFIED"
    SYNCHRONOUS = "SYNCHRONOUS"
    ASYNCHRONOUS = "ASYNCHRONOUS"


@runtime_checkable
class IndexingService(Protocol):
    """Narrow view of the indexing backend.

    ``start``/``stop`` complete once the client is running or fully
    terminated; the writer awaits them so that its own open/close stay
    simple sequential calls.
    """

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def is_running(self) -> bool: ...

    async def get_schema(self) -> Schema: ...

    async def index_item_and_content(
        self,
        item: Item,
        content: "ContentPayload",
        content_hash: Optional[str],
        content_format: ContentFormat,
        request_mode: RequestMode,
    ) -> Dict[str, Any]: ...

    async def delete_item(self, item_id: str, version: bytes, request_mode: RequestMode) -> Dict[str, Any]: ...
