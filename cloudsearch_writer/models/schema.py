"""Data source schema models as returned by ``indexing.datasources.getSchema``."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from cloudsearch_writer.models.item import ApiModel

PROPERTY_TYPES = (
    "boolean",
    "text",
    "html",
    "integer",
    "double",
    "date",
    "timestamp",
    "enum",
    "object",
)


class PropertyDefinition(ApiModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    is_repeatable: bool = False
    is_returnable: bool = False
    boolean_property_options: Optional[Dict[str, Any]] = None
    text_property_options: Optional[Dict[str, Any]] = None
    html_property_options: Optional[Dict[str, Any]] = None
    integer_property_options: Optional[Dict[str, Any]] = None
    double_property_options: Optional[Dict[str, Any]] = None
    date_property_options: Optional[Dict[str, Any]] = None
    timestamp_property_options: Optional[Dict[str, Any]] = None
    enum_property_options: Optional[Dict[str, Any]] = None
    object_property_options: Optional[Dict[str, Any]] = None

    @property
    def property_type(self) -> Optional[str]:
        for kind in PROPERTY_TYPES:
            if getattr(self, f"{kind}_property_options") is not None:
                return kind
        return None


class ObjectDefinition(ApiModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    property_definitions: List[PropertyDefinition] = Field(default_factory=list)


class Schema(ApiModel):
    model_config = ConfigDict(extra="ignore")

    object_definitions: List[ObjectDefinition] = Field(default_factory=list)

    def find_object(self, name: str) -> Optional[ObjectDefinition]:
        for definition in self.object_definitions:
            if definition.name == name:
                return definition
        return None
