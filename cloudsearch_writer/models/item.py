"""Cloud Search item data models.

Field names follow Python conventions; `to_api()` renders the camelCase JSON
the Cloud Search REST API expects.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ItemType(str, Enum):
    CONTENT_ITEM = "CONTENT_ITEM"
    CONTAINER_ITEM = "CONTAINER_ITEM"
    VIRTUAL_CONTAINER_ITEM = "VIRTUAL_CONTAINER_ITEM"


class GSuitePrincipal(ApiModel):
    gsuite_domain: Optional[bool] = None
    gsuite_user_email: Optional[str] = None
    gsuite_group_email: Optional[str] = None


class Principal(ApiModel):
    gsuite_principal: Optional[GSuitePrincipal] = None
    user_resource_name: Optional[str] = None
    group_resource_name: Optional[str] = None


def customer_principal() -> Principal:
    """Principal standing for every user of the customer's domain."""

    return Principal(gsuite_principal=GSuitePrincipal(gsuite_domain=True))


class ItemAcl(ApiModel):
    readers: List[Principal] = Field(default_factory=list)
    denied_readers: List[Principal] = Field(default_factory=list)
    owners: List[Principal] = Field(default_factory=list)


class ItemMetadata(ApiModel):
    title: Optional[str] = None
    mime_type: Optional[str] = None
    source_repository_url: Optional[str] = None
    content_language: Optional[str] = None
    create_time: Optional[str] = None
    update_time: Optional[str] = None
    object_type: Optional[str] = None


class StringValues(ApiModel):
    values: List[str] = Field(default_factory=list)


class IntegerValues(ApiModel):
    values: List[int] = Field(default_factory=list)


class DoubleValues(ApiModel):
    values: List[float] = Field(default_factory=list)


class Date(ApiModel):
    year: int
    month: int
    day: int


class DateValues(ApiModel):
    values: List[Date] = Field(default_factory=list)


class NamedProperty(ApiModel):
    name: str
    boolean_value: Optional[bool] = None
    text_values: Optional[StringValues] = None
    html_values: Optional[StringValues] = None
    enum_values: Optional[StringValues] = None
    timestamp_values: Optional[StringValues] = None
    integer_values: Optional[IntegerValues] = None
    double_values: Optional[DoubleValues] = None
    date_values: Optional[DateValues] = None


class StructuredDataObject(ApiModel):
    properties: List[NamedProperty] = Field(default_factory=list)


class ItemStructuredData(ApiModel):
    object: StructuredDataObject = Field(default_factory=StructuredDataObject)
    hash: Optional[str] = None


class UploadItemRef(ApiModel):
    name: str


class ItemContent(ApiModel):
    content_format: str
    inline_content: Optional[str] = None
    content_data_ref: Optional[UploadItemRef] = None
    hash: Optional[str] = None


class Item(ApiModel):
    """Backend representation of one indexed document."""

    name: str
    item_type: ItemType = ItemType.CONTENT_ITEM
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)
    structured_data: Optional[ItemStructuredData] = None
    acl: Optional[ItemAcl] = None
    content: Optional[ItemContent] = None
    version: Optional[str] = None
