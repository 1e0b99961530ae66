"""Crawled document record handed to the writer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

FieldValue = Union[str, bytes]

FIELD_ID = "id"
FIELD_URL = "url"
FIELD_RAW_CONTENT = "binaryContent"
FIELD_TEXT_CONTENT = "content"  # extracted text, filled by the crawler's basic indexing filter
FIELD_CONTENT_TYPE = "type"  # MIME type, filled by the crawler's "more" indexing filter
FIELD_TITLE = "title"
FIELD_LAST_MODIFIED = "lastModified"


class CrawlDocument(Mapping):
    """Ordered mapping from field name to one or more values.

    Field order is insertion order. Looking a field up returns all of its
    values; `get_field_value` returns only the first one, which is what most
    single valued fields (``id``, ``url``, ``type``) need.
    """

    def __init__(self, fields: Optional[Dict[str, Any]] = None) -> None:
        self._fields: Dict[str, List[FieldValue]] = {}
        for name, value in (fields or {}).items():
            self.add(name, value)

    def add(self, name: str, value: Any) -> "CrawlDocument":
        values = self._fields.setdefault(name, [])
        if isinstance(value, (list, tuple)):
            values.extend(self._coerce(item) for item in value if item is not None)
        elif value is not None:
            values.append(self._coerce(value))
        return self

    @staticmethod
    def _coerce(value: Any) -> FieldValue:
        if isinstance(value, (str, bytes)):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_field_value(self, name: str) -> Optional[FieldValue]:
        values = self._fields.get(name)
        if not values:
            return None
        return values[0]

    def get_text(self, name: str) -> Optional[str]:
        value = self.get_field_value(name)
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    def __getitem__(self, name: str) -> Tuple[FieldValue, ...]:
        return tuple(self._fields[name])

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"CrawlDocument(id={self.get_field_value('id')!r}, fields={list(self._fields)})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlDocument":
        """Build a document from a decoded JSON record; lists become multi-values."""

        return cls(data)
