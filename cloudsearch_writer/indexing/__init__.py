"""Document to Cloud Search item translation and submission."""

from .acl import AclResolver, DefaultAcl, DefaultAclMode
from .content import ContentPayload, UploadFormat, select_content
from .item_builder import ItemBuilder
from .structured_data import StructuredDataRegistry, structured_data_registry
from .writer import (
    CONFIG_KEY_CONFIG_FILE,
    CONFIG_KEY_UPLOAD_FORMAT,
    CloudSearchIndexWriter,
    IndexWriterHelper,
)

__all__ = [
    "AclResolver",
    "CONFIG_KEY_CONFIG_FILE",
    "CONFIG_KEY_UPLOAD_FORMAT",
    "CloudSearchIndexWriter",
    "ContentPayload",
    "DefaultAcl",
    "DefaultAclMode",
    "IndexWriterHelper",
    "ItemBuilder",
    "StructuredDataRegistry",
    "UploadFormat",
    "select_content",
    "structured_data_registry",
]
