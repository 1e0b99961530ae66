from unittest.mock import AsyncMock, MagicMock

import pytest

from cloudsearch_writer.core.config import SdkConfiguration
from cloudsearch_writer.indexing.structured_data import StructuredDataRegistry
from cloudsearch_writer.indexing.writer import (
    CONFIG_KEY_CONFIG_FILE,
    CONFIG_KEY_UPLOAD_FORMAT,
    CloudSearchIndexWriter,
    IndexWriterHelper,
)
from cloudsearch_writer.models.schema import Schema

CURRENT_MILLIS = 123456789


@pytest.fixture
def sdk_config():
    return SdkConfiguration(source_id="source1")


@pytest.fixture
def indexing_service():
    service = MagicMock()
    service.start = AsyncMock()
    service.stop = AsyncMock()
    service.is_running = MagicMock(return_value=False)
    service.get_schema = AsyncMock(return_value=Schema())
    service.index_item_and_content = AsyncMock(return_value={"name": "operations/1"})
    service.delete_item = AsyncMock(return_value={})
    return service


@pytest.fixture
def default_acl():
    acl = MagicMock()
    acl.apply_to_if_enabled.return_value = True
    return acl


@pytest.fixture
def helper(indexing_service, default_acl, sdk_config):
    stub = MagicMock(spec=IndexWriterHelper)
    stub.is_config_initialized.return_value = True
    stub.get_config.return_value = sdk_config
    stub.create_indexing_service.return_value = indexing_service
    stub.init_default_acl_from_config.return_value = default_acl
    stub.current_time_millis.return_value = CURRENT_MILLIS
    return stub


@pytest.fixture
def params():
    return {CONFIG_KEY_CONFIG_FILE: "/path/to/config", CONFIG_KEY_UPLOAD_FORMAT: "RAW"}


@pytest.fixture
def structured_data():
    return StructuredDataRegistry()


@pytest.fixture
def writer(helper, structured_data):
    return CloudSearchIndexWriter(helper, structured_data)
