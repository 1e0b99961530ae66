import pytest
from google.auth.exceptions import DefaultCredentialsError

from cloudsearch_writer.core.config import ConfigurationManager, SdkConfiguration
from cloudsearch_writer.core.exceptions import (
    ClientCreationError,
    ConfigurationError,
    ContentDecodeError,
    ContentMissingError,
    ContentTypeMissingError,
    IndexWriterError,
    InvalidUploadFormatError,
    ValidationError,
)
from cloudsearch_writer.indexing.content import ContentPayload, UploadFormat
from cloudsearch_writer.indexing.writer import (
    CONFIG_KEY_CONFIG_FILE,
    CONFIG_KEY_UPLOAD_FORMAT,
    CloudSearchIndexWriter,
    display_size,
)
from cloudsearch_writer.integrations.base import ContentFormat, RequestMode
from cloudsearch_writer.models.document import (
    FIELD_CONTENT_TYPE,
    FIELD_ID,
    FIELD_RAW_CONTENT,
    FIELD_TEXT_CONTENT,
    FIELD_URL,
    CrawlDocument,
)
from cloudsearch_writer.models.item import (
    Item,
    ItemAcl,
    ItemMetadata,
    ItemType,
    NamedProperty,
    StructuredDataObject,
    customer_principal,
)
from cloudsearch_writer.models.schema import ObjectDefinition, PropertyDefinition, Schema

CONTENT = "Test1234567890"
CONTENT_BASE64 = "VGVzdDEyMzQ1Njc4OTA="
URL = "http://x.yz/abc"
ID = "XYZ123"
MIME_TEXT = "text/plain"
MIME_PDF = "text/pdf"
CURRENT_MILLIS = 123456789


def raw_document():
    doc = CrawlDocument()
    doc.add(FIELD_ID, ID)
    doc.add(FIELD_URL, URL)
    doc.add(FIELD_RAW_CONTENT, CONTENT_BASE64)
    doc.add(FIELD_CONTENT_TYPE, MIME_PDF)
    return doc


def text_document():
    doc = CrawlDocument()
    doc.add(FIELD_ID, ID)
    doc.add(FIELD_URL, URL)
    doc.add(FIELD_TEXT_CONTENT, CONTENT)
    doc.add(FIELD_CONTENT_TYPE, MIME_TEXT)
    return doc


def golden_item(apply_domain_acl, mime_type):
    item = Item(
        name=ID,
        item_type=ItemType.CONTENT_ITEM,
        metadata=ItemMetadata(source_repository_url=URL, mime_type=mime_type),
    )
    if apply_domain_acl:
        item.acl = ItemAcl(readers=[customer_principal()])
    return item


def submitted(indexing_service):
    indexing_service.index_item_and_content.assert_awaited_once()
    return indexing_service.index_item_and_content.await_args.args


def test_constant_values():
    assert CONFIG_KEY_CONFIG_FILE == "gcs.config.file"
    assert CONFIG_KEY_UPLOAD_FORMAT == "gcs.uploadFormat"
    assert FIELD_CONTENT_TYPE == "type"
    assert FIELD_URL == "url"
    assert FIELD_ID == "id"
    assert FIELD_RAW_CONTENT == "binaryContent"
    assert FIELD_TEXT_CONTENT == "content"


@pytest.mark.asyncio
async def test_full_lifecycle(writer, helper, params, indexing_service):
    helper.is_config_initialized.return_value = False
    indexing_service.is_running.return_value = True

    await writer.open(params)
    doc = raw_document()
    await writer.write(doc)
    await writer.update(doc)
    await writer.delete(ID)
    await writer.close()

    helper.is_config_initialized.assert_called_once()
    helper.init_config.assert_called_once_with("/path/to/config")
    helper.create_indexing_service.assert_called_once()
    helper.init_default_acl_from_config.assert_called_once_with(indexing_service)
    assert [call[0] for call in indexing_service.method_calls] == [
        "start",
        "get_schema",
        "index_item_and_content",
        "index_item_and_content",
        "delete_item",
        "is_running",
        "stop",
    ]
    assert writer.stats.as_dict() == {"indexed": 2, "failed": 0, "rejected": 0, "deleted": 1}


@pytest.mark.asyncio
async def test_open_initializes_config(writer, helper, params):
    helper.is_config_initialized.return_value = False
    await writer.open(params)
    helper.is_config_initialized.assert_called_once()
    helper.init_config.assert_called_once_with("/path/to/config")


@pytest.mark.asyncio
async def test_open_does_not_reinitialize_config(writer, helper, params):
    await writer.open(params)
    helper.is_config_initialized.assert_called_once()
    helper.init_config.assert_not_called()


@pytest.mark.asyncio
async def test_open_fails_when_config_initialization_fails(writer, helper, params):
    helper.is_config_initialized.return_value = False
    helper.init_config.side_effect = OSError("unreadable")
    with pytest.raises(ConfigurationError) as excinfo:
        await writer.open(params)
    assert excinfo.value.message == (
        "Failed to initialize SDK configuration. Check the configuration file and try again!"
    )
    helper.create_indexing_service.assert_not_called()


@pytest.mark.asyncio
async def test_open_reads_latin1_properties_file(writer, helper, params, tmp_path):
    path = tmp_path / "connector.properties"
    path.write_bytes("api.sourceId: s1\nitemMetadata.title.defaultValue=Grüße\n".encode("latin-1"))
    manager = ConfigurationManager()
    helper.is_config_initialized.return_value = False
    helper.init_config.side_effect = manager.initialize
    helper.get_config.side_effect = manager.get
    params[CONFIG_KEY_CONFIG_FILE] = str(path)

    await writer.open(params)

    assert manager.get().source_id == "s1"
    assert manager.get().title_default == "Grüße"


@pytest.mark.asyncio
async def test_open_wraps_unparseable_properties_file(writer, helper, params, tmp_path):
    path = tmp_path / "connector.properties"
    path.write_text("api.sourceId=s1\nitemMetadata.title.defaultValue=\\uZZZZ\n", encoding="latin-1")
    helper.is_config_initialized.return_value = False
    helper.init_config.side_effect = ConfigurationManager().initialize
    params[CONFIG_KEY_CONFIG_FILE] = str(path)

    with pytest.raises(ConfigurationError, match="Failed to initialize SDK configuration"):
        await writer.open(params)
    helper.create_indexing_service.assert_not_called()


@pytest.mark.asyncio
async def test_open_fails_without_config_path(writer, params, helper):
    params[CONFIG_KEY_CONFIG_FILE] = None
    with pytest.raises(ConfigurationError, match=CONFIG_KEY_CONFIG_FILE):
        await writer.open(params)
    helper.is_config_initialized.assert_not_called()


@pytest.mark.asyncio
async def test_open_creates_and_starts_indexing_service(writer, helper, params, indexing_service):
    await writer.open(params)
    helper.create_indexing_service.assert_called_once()
    indexing_service.start.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [DefaultCredentialsError("no credentials"), OSError("missing key file")])
async def test_open_fails_when_creating_indexing_service_fails(writer, helper, params, error):
    helper.create_indexing_service.side_effect = error
    with pytest.raises(ClientCreationError, match="failed to create IndexingService"):
        await writer.open(params)


@pytest.mark.asyncio
async def test_open_fails_with_invalid_upload_format(writer, helper, params):
    params[CONFIG_KEY_UPLOAD_FORMAT] = "Invalid_Value"
    with pytest.raises(InvalidUploadFormatError, match=f"Unknown value for '{CONFIG_KEY_UPLOAD_FORMAT}'"):
        await writer.open(params)
    helper.create_indexing_service.assert_not_called()


@pytest.mark.asyncio
async def test_upload_format_defaults_to_raw_and_is_case_insensitive(writer, params):
    params[CONFIG_KEY_UPLOAD_FORMAT] = None
    await writer.open(params)
    assert writer.upload_format is UploadFormat.RAW

    other = CloudSearchIndexWriter(writer.helper, writer.structured_data)
    params[CONFIG_KEY_UPLOAD_FORMAT] = "Text"
    await other.open(params)
    assert other.upload_format is UploadFormat.TEXT


@pytest.mark.asyncio
async def test_open_stops_service_when_later_setup_fails(writer, helper, params, indexing_service):
    indexing_service.is_running.return_value = True
    helper.init_default_acl_from_config.side_effect = ConfigurationError("bad defaultAcl")
    with pytest.raises(ConfigurationError):
        await writer.open(params)
    indexing_service.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_schema_is_loaded_once_across_writers(writer, helper, params, indexing_service):
    await writer.open(params)
    second = CloudSearchIndexWriter(helper, writer.structured_data)
    await second.open(params)
    indexing_service.get_schema.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_delegates_to_indexing_service(writer, params, indexing_service):
    await writer.open(params)
    await writer.delete(URL)
    indexing_service.delete_item.assert_awaited_once_with(
        URL, str(CURRENT_MILLIS).encode(), RequestMode.ASYNCHRONOUS
    )


@pytest.mark.asyncio
async def test_delete_requires_id(writer, params, indexing_service):
    await writer.open(params)
    with pytest.raises(ValidationError):
        await writer.delete("")
    indexing_service.delete_item.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_errors_propagate(writer, params, indexing_service):
    indexing_service.delete_item.side_effect = OSError("connection reset")
    await writer.open(params)
    with pytest.raises(OSError):
        await writer.delete(ID)


@pytest.mark.asyncio
async def test_commit_does_not_interact_with_dependencies(writer, helper, default_acl, indexing_service):
    await writer.commit()
    assert indexing_service.method_calls == []
    assert default_acl.method_calls == []
    assert helper.method_calls == []


@pytest.mark.asyncio
async def test_write_before_open_fails(writer):
    with pytest.raises(IndexWriterError, match="not open"):
        await writer.write(raw_document())


@pytest.fixture(params=["write", "update"])
def submit(request, writer):
    return getattr(writer, request.param)


@pytest.mark.asyncio
async def test_fails_when_binary_content_is_not_base64(submit, writer, params, indexing_service):
    await writer.open(params)
    doc = CrawlDocument({FIELD_ID: ID, FIELD_URL: URL, FIELD_CONTENT_TYPE: MIME_PDF})
    doc.add(FIELD_RAW_CONTENT, "Content_not_in+Base64")
    with pytest.raises(ContentDecodeError, match="binaryContent not available or not Base64 encoded"):
        await submit(doc)
    indexing_service.index_item_and_content.assert_not_awaited()
    assert writer.stats.rejected == 1


@pytest.mark.asyncio
async def test_fails_when_binary_content_is_missing(submit, writer, params, indexing_service):
    await writer.open(params)
    doc = CrawlDocument({FIELD_ID: ID, FIELD_URL: URL, FIELD_CONTENT_TYPE: MIME_PDF})
    with pytest.raises(ContentDecodeError, match="binaryContent not available or not Base64 encoded"):
        await submit(doc)
    indexing_service.index_item_and_content.assert_not_awaited()


@pytest.mark.asyncio
async def test_fails_when_text_content_is_missing(submit, writer, params, indexing_service):
    params[CONFIG_KEY_UPLOAD_FORMAT] = "Text"
    await writer.open(params)
    doc = CrawlDocument({FIELD_ID: ID, FIELD_URL: URL, FIELD_CONTENT_TYPE: MIME_TEXT})
    with pytest.raises(
        ContentMissingError,
        match=r"Text content \('content'\) field is missing, please enable the index-basic plugin!",
    ):
        await submit(doc)
    indexing_service.index_item_and_content.assert_not_awaited()


@pytest.mark.asyncio
async def test_fails_when_content_type_is_missing(submit, writer, params, indexing_service):
    await writer.open(params)
    doc = CrawlDocument({FIELD_ID: ID, FIELD_URL: URL, FIELD_RAW_CONTENT: CONTENT_BASE64})
    with pytest.raises(
        ContentTypeMissingError,
        match=r"ContentType \('type'\) field is missing, please enable the index-more plugin!",
    ):
        await submit(doc)
    indexing_service.index_item_and_content.assert_not_awaited()


@pytest.mark.asyncio
async def test_fails_when_id_is_missing(submit, writer, params, indexing_service):
    await writer.open(params)
    doc = CrawlDocument({FIELD_URL: URL, FIELD_RAW_CONTENT: CONTENT_BASE64, FIELD_CONTENT_TYPE: MIME_PDF})
    with pytest.raises(ValidationError):
        await submit(doc)
    indexing_service.index_item_and_content.assert_not_awaited()


@pytest.mark.asyncio
async def test_does_not_fail_when_indexing_service_raises_io_error(submit, writer, params, indexing_service):
    params[CONFIG_KEY_UPLOAD_FORMAT] = "Text"
    indexing_service.index_item_and_content.side_effect = OSError("broken pipe")
    await writer.open(params)

    await submit(text_document())

    indexing_service.index_item_and_content.assert_awaited_once()
    assert writer.stats.failed == 1
    assert writer.stats.indexed == 0


@pytest.mark.asyncio
async def test_keeps_going_after_runtime_error(writer, params, indexing_service):
    params[CONFIG_KEY_UPLOAD_FORMAT] = "Text"
    indexing_service.index_item_and_content.side_effect = [
        {"name": "operations/1"},
        RuntimeError("boom"),
        {"name": "operations/3"},
    ]
    await writer.open(params)
    doc = text_document()
    await writer.write(doc)
    await writer.write(doc)
    await writer.write(doc)
    assert indexing_service.index_item_and_content.await_count == 3
    assert writer.stats.as_dict() == {"indexed": 2, "failed": 1, "rejected": 0, "deleted": 0}


@pytest.mark.asyncio
async def test_default_upload_format_and_customer_domain_acl(submit, writer, params, default_acl, indexing_service):
    default_acl.apply_to_if_enabled.return_value = False
    params[CONFIG_KEY_UPLOAD_FORMAT] = None
    await writer.open(params)

    await submit(raw_document())

    item, payload, content_hash, content_format, request_mode = submitted(indexing_service)
    assert item == golden_item(True, MIME_PDF)
    assert item.acl.readers == [customer_principal()]
    assert content_hash is None
    assert content_format is ContentFormat.RAW
    assert request_mode is RequestMode.ASYNCHRONOUS
    assert payload.mime_type == MIME_PDF
    assert payload.data == CONTENT.encode()
    assert payload.length == len(CONTENT)


@pytest.mark.asyncio
async def test_successful_raw_content(submit, writer, params, indexing_service):
    await writer.open(params)
    await submit(raw_document())

    item, payload, content_hash, content_format, request_mode = submitted(indexing_service)
    assert item == golden_item(False, MIME_PDF)
    assert content_hash is None
    assert content_format is ContentFormat.RAW
    assert request_mode is RequestMode.ASYNCHRONOUS
    assert payload == ContentPayload(data=CONTENT.encode(), mime_type=MIME_PDF, upload_format=UploadFormat.RAW)


@pytest.mark.asyncio
async def test_successful_text_content(submit, writer, params, indexing_service):
    params[CONFIG_KEY_UPLOAD_FORMAT] = "TEXT"
    await writer.open(params)
    await submit(text_document())

    item, payload, content_hash, content_format, request_mode = submitted(indexing_service)
    assert item == golden_item(False, MIME_TEXT)
    assert content_format is ContentFormat.TEXT
    assert request_mode is RequestMode.ASYNCHRONOUS
    assert payload.mime_type == MIME_TEXT
    assert payload.data == CONTENT.encode()


@pytest.mark.asyncio
async def test_write_and_update_submit_identical_calls(writer, params, indexing_service):
    await writer.open(params)
    await writer.write(raw_document())
    await writer.update(raw_document())
    first, second = indexing_service.index_item_and_content.await_args_list
    assert first == second


def test_describe_returns_writer_name(writer):
    assert writer.describe() == "Google Cloud Search Indexer"
    assert set(writer.describe_options()) == {CONFIG_KEY_CONFIG_FILE, CONFIG_KEY_UPLOAD_FORMAT}


@pytest.mark.asyncio
async def test_close_stops_running_indexing_service(writer, params, indexing_service):
    indexing_service.is_running.return_value = True
    await writer.open(params)
    await writer.close()
    indexing_service.is_running.assert_called_once()
    indexing_service.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_skips_stop_when_service_not_running(writer, params, indexing_service):
    await writer.open(params)
    await writer.close()
    indexing_service.stop.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_without_open_is_safe(writer, indexing_service):
    await writer.close()
    await writer.close()
    indexing_service.stop.assert_not_awaited()


@pytest.mark.asyncio
async def test_closed_writer_refuses_documents(writer, params, indexing_service):
    indexing_service.is_running.return_value = True
    await writer.open(params)
    await writer.close()

    with pytest.raises(IndexWriterError, match="not open"):
        await writer.write(raw_document())
    with pytest.raises(IndexWriterError, match="not open"):
        await writer.delete(ID)
    indexing_service.index_item_and_content.assert_not_awaited()
    indexing_service.delete_item.assert_not_awaited()
    assert writer.stats.failed == 0


@pytest.mark.asyncio
async def test_session_opens_and_closes(writer, params, indexing_service):
    indexing_service.is_running.return_value = True
    async with writer.session(params) as opened:
        assert opened is writer
        indexing_service.start.assert_awaited_once()
    indexing_service.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_item_metadata_fields(writer, helper, params, indexing_service):
    helper.get_config.return_value = SdkConfiguration(
        source_id="source1",
        update_time_field="modified",
        create_time_field="created",
        content_language_default="en",
    )
    params[CONFIG_KEY_UPLOAD_FORMAT] = "TEXT"
    await writer.open(params)

    doc = CrawlDocument()
    doc.add(FIELD_ID, ID)
    doc.add(FIELD_URL, URL)
    doc.add(FIELD_TEXT_CONTENT, "<html> <head> <title> Hello </title></head> <body> Hello </body></html>")
    doc.add("title", "Helo")
    doc.add("created", "2018-08-10T10:10:10.100Z")
    doc.add("modified", "2018-08-13T15:01:23.100Z")
    doc.add("lastModified", "2018-08-18T18:01:23.100Z")
    doc.add(FIELD_CONTENT_TYPE, MIME_TEXT)
    await writer.write(doc)

    item = submitted(indexing_service)[0]
    assert item.metadata == ItemMetadata(
        title="Helo",
        mime_type=MIME_TEXT,
        source_repository_url=URL,
        content_language="en",
        create_time="2018-08-10T10:10:10.100Z",
        update_time="2018-08-18T18:01:23.100Z",
    )


@pytest.mark.asyncio
async def test_out_of_range_last_modified_is_dropped(writer, params, indexing_service):
    await writer.open(params)
    doc = raw_document()
    doc.add("lastModified", "99999999999999999999")

    await writer.write(doc)

    item = submitted(indexing_service)[0]
    assert item.metadata.update_time is None
    assert writer.stats.indexed == 1
    assert writer.stats.failed == 0


@pytest.mark.asyncio
async def test_item_structured_data(writer, helper, params, indexing_service):
    approved = PropertyDefinition(
        name="approved",
        is_repeatable=False,
        is_returnable=True,
        boolean_property_options={},
    )
    indexing_service.get_schema.return_value = Schema(
        object_definitions=[ObjectDefinition(name="schema1", property_definitions=[approved])]
    )
    helper.get_config.return_value = SdkConfiguration(source_id="source1", object_type="schema1")
    params[CONFIG_KEY_UPLOAD_FORMAT] = "TEXT"
    await writer.open(params)

    doc = text_document()
    doc.add("approved", "true")
    await writer.write(doc)

    item = submitted(indexing_service)[0]
    assert item.structured_data.object == StructuredDataObject(
        properties=[NamedProperty(name="approved", boolean_value=True)]
    )
    assert item.metadata.object_type == "schema1"


@pytest.mark.asyncio
async def test_open_fails_for_object_type_missing_from_schema(writer, helper, params):
    helper.get_config.return_value = SdkConfiguration(source_id="source1", object_type="unknown")
    with pytest.raises(ConfigurationError, match="unknown"):
        await writer.open(params)


@pytest.mark.parametrize(
    "size, expected",
    [(None, "Unknown length"), (0, "0 bytes"), (1023, "1023 bytes"), (2048, "2 KB"), (5 * 1024 * 1024, "5 MB")],
)
def test_display_size(size, expected):
    assert display_size(size) == expected
