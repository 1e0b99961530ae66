from .document import CrawlDocument
from .item import (
    Item,
    ItemAcl,
    ItemContent,
    ItemMetadata,
    ItemStructuredData,
    ItemType,
    NamedProperty,
    Principal,
    StructuredDataObject,
    customer_principal,
)
from .schema import ObjectDefinition, PropertyDefinition, Schema

__all__ = [
    "CrawlDocument",
    "Item",
    "ItemAcl",
    "ItemContent",
    "ItemMetadata",
    "ItemStructuredData",
    "ItemType",
    "NamedProperty",
    "ObjectDefinition",
    "Principal",
    "PropertyDefinition",
    "Schema",
    "StructuredDataObject",
    "customer_principal",
]
