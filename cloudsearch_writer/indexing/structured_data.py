"""Schema-driven structured data for items.

The data source schema is shared by every writer in the process. It is fetched
from the backend on the first ``open()`` and kept in `structured_data_registry`
until the process exits (or a test resets it).
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from cloudsearch_writer.models.item import (
    Date,
    DateValues,
    DoubleValues,
    IntegerValues,
    ItemStructuredData,
    NamedProperty,
    StringValues,
    StructuredDataObject,
)
from cloudsearch_writer.models.schema import PropertyDefinition, Schema

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "y", "on"}
_FALSE_VALUES = {"false", "0", "no", "n", "off"}


def _as_text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def parse_boolean(value: object) -> bool:
    text = _as_text(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_timestamp(value: object) -> str:
    """Normalize an ISO-8601 string or epoch milliseconds to RFC 3339 UTC."""

    text = _as_text(value).strip()
    try:
        if text.isdigit():
            moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=int(text))
        else:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError(f"timestamp out of range: {text}") from exc
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_date(value: object) -> Date:
    text = _as_text(value).strip()
    parsed = datetime.fromisoformat(text[:10])
    return Date(year=parsed.year, month=parsed.month, day=parsed.day)


_CONVERTERS: Dict[str, Callable[[object], object]] = {
    "boolean": parse_boolean,
    "text": _as_text,
    "html": _as_text,
    "enum": _as_text,
    "integer": lambda value: int(_as_text(value).strip()),
    "double": lambda value: float(_as_text(value).strip()),
    "timestamp": parse_timestamp,
    "date": parse_date,
}


def build_named_property(definition: PropertyDefinition, raw_values: Sequence[object]) -> Optional[NamedProperty]:
    """Coerce raw field values to the property's declared type.

    Values that do not convert are dropped with a warning; ``None`` means no
    usable value was left.
    """

    kind = definition.property_type
    converter = _CONVERTERS.get(kind or "")
    if converter is None:
        logger.debug("Skipping property %s with unsupported type %s", definition.name, kind)
        return None

    values: List[object] = []
    for raw in raw_values:
        try:
            values.append(converter(raw))
        except (TypeError, ValueError) as exc:
            logger.warning("Dropping value %r for %s property %s: %s", raw, kind, definition.name, exc)
    if not values:
        return None
    if not definition.is_repeatable:
        values = values[:1]

    prop = NamedProperty(name=definition.name)
    if kind == "boolean":
        prop.boolean_value = bool(values[0])
    elif kind == "integer":
        prop.integer_values = IntegerValues(values=values)
    elif kind == "double":
        prop.double_values = DoubleValues(values=values)
    elif kind == "date":
        prop.date_values = DateValues(values=values)
    else:
        setattr(prop, f"{kind}_values", StringValues(values=values))
    return prop


class StructuredDataRegistry:
    """Process wide cache of the data source schema, initialized once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: Optional[Dict[str, Dict[str, PropertyDefinition]]] = None

    def is_initialized(self) -> bool:
        return self._objects is not None

    def initialize(self, schema: Schema) -> bool:
        """Load ``schema`` unless already loaded; returns whether it was loaded now."""

        with self._lock:
            if self._objects is not None:
                return False
            self._objects = {
                definition.name: {prop.name: prop for prop in definition.property_definitions}
                for definition in schema.object_definitions
            }
            logger.info("Structured data initialized with object definitions: %s", sorted(self._objects))
            return True

    def reset(self) -> None:
        with self._lock:
            self._objects = None

    def has_object(self, object_type: str) -> bool:
        return object_type in (self._objects or {})

    def build(self, object_type: str, fields: Mapping[str, Sequence[object]]) -> Optional[ItemStructuredData]:
        """Structured data for the document fields that match ``object_type``.

        Fields without a matching property are ignored.
        """

        if self._objects is None:
            raise RuntimeError("Structured data has not been initialized")
        definitions = self._objects.get(object_type)
        if definitions is None:
            raise ValueError(f"Unknown object type in schema: {object_type}")

        properties: List[NamedProperty] = []
        for field_name, raw_values in fields.items():
            definition = definitions.get(field_name)
            if definition is None:
                continue
            prop = build_named_property(definition, raw_values)
            if prop is not None:
                properties.append(prop)

        if not properties:
            return None
        return ItemStructuredData(object=StructuredDataObject(properties=properties))


structured_data_registry = StructuredDataRegistry()
