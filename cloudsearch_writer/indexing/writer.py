"""Index writer that submits crawled documents to Google Cloud Search.

The writer follows the crawler's index writer contract: ``open`` once,
``write``/``update``/``delete`` per document, ``commit`` and ``close`` at the
end of the batch. Every call is made by a single caller in sequence.

Errors that make a document unusable (no content type, no content, no id) are
raised to the caller. Anything that goes wrong after a document passed those
checks is logged and counted in `stats` but not raised, so the batch keeps
going.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Mapping, Optional

from google.auth.exceptions import GoogleAuthError

from cloudsearch_writer.core.config import ConfigurationManager, SdkConfiguration, configuration_manager
from cloudsearch_writer.core.exceptions import (
    ClientCreationError,
    ConfigurationError,
    DocumentError,
    IndexWriterError,
    InvalidUploadFormatError,
    ValidationError,
)
from cloudsearch_writer.indexing.acl import AclPolicy, AclResolver, DefaultAcl
from cloudsearch_writer.indexing.content import UploadFormat, require_content_type, select_content
from cloudsearch_writer.indexing.item_builder import ItemBuilder
from cloudsearch_writer.indexing.structured_data import StructuredDataRegistry, structured_data_registry
from cloudsearch_writer.integrations.base import IndexingService, RequestMode
from cloudsearch_writer.integrations.cloudsearch import CloudSearchIndexingService
from cloudsearch_writer.models.document import FIELD_ID, FIELD_URL, CrawlDocument
from cloudsearch_writer.utils.monitoring import IndexingStats, observe_document, observe_payload_size

logger = logging.getLogger(__name__)

CONFIG_KEY_CONFIG_FILE = "gcs.config.file"
CONFIG_KEY_UPLOAD_FORMAT = "gcs.uploadFormat"
WRITER_NAME = "Google Cloud Search Indexer"


def display_size(size: Optional[int]) -> str:
    if size is None or size < 0:
        return "Unknown length"
    for unit, factor in (("GB", 1 << 30), ("MB", 1 << 20), ("KB", 1 << 10)):
        if size >= factor:
            return f"{size // factor} {unit}"
    return f"{size} bytes"


class IndexWriterHelper:
    """Factory for the writer's external collaborators."""

    def __init__(self, configuration: ConfigurationManager = configuration_manager) -> None:
        self.configuration = configuration

    def is_config_initialized(self) -> bool:
        return self.configuration.is_initialized()

    def init_config(self, config_path: str) -> None:
        self.configuration.initialize(config_path)

    def get_config(self) -> SdkConfiguration:
        return self.configuration.get()

    def create_indexing_service(self) -> IndexingService:
        return CloudSearchIndexingService.from_configuration(self.get_config())

    def init_default_acl_from_config(self, indexing_service: IndexingService) -> AclPolicy:
        return DefaultAcl.from_configuration(self.get_config())

    def current_time_millis(self) -> int:
        return int(time.time() * 1000)


class CloudSearchIndexWriter:
    """Push crawled documents into a Cloud Search data source."""

    def __init__(
        self,
        helper: Optional[IndexWriterHelper] = None,
        structured_data: Optional[StructuredDataRegistry] = None,
    ) -> None:
        self.helper = helper or IndexWriterHelper()
        self.structured_data = structured_data or structured_data_registry
        self.config_path: Optional[str] = None
        self.upload_format = UploadFormat.RAW
        self.indexing_service: Optional[IndexingService] = None
        self.default_acl: Optional[AclPolicy] = None
        self.item_builder: Optional[ItemBuilder] = None
        self.acl_resolver: Optional[AclResolver] = None
        self.stats = IndexingStats()

    async def open(self, params: Mapping[str, Optional[str]]) -> None:
        logger.info("Starting up!")
        self._init_sdk_config(params)
        self._update_upload_format(params)
        service = self._create_indexing_service()
        await service.start()
        self.indexing_service = service

        try:
            self.default_acl = self.helper.init_default_acl_from_config(service)
            self.acl_resolver = AclResolver(self.default_acl)
            if not self.structured_data.is_initialized():
                self.structured_data.initialize(await service.get_schema())
            self.item_builder = ItemBuilder(self.helper.get_config(), self.structured_data)
        except BaseException:
            await self.close()
            raise
        logger.info("Opened %s (upload format %s)", WRITER_NAME, self.upload_format.value)

    def _init_sdk_config(self, params: Mapping[str, Optional[str]]) -> None:
        config_path = params.get(CONFIG_KEY_CONFIG_FILE)
        if not config_path:
            raise ConfigurationError(f"Missing required configuration parameter: {CONFIG_KEY_CONFIG_FILE}")
        self.config_path = str(config_path)
        if not self.helper.is_config_initialized():
            try:
                self.helper.init_config(self.config_path)
            except (OSError, ValueError, ConfigurationError) as exc:
                raise ConfigurationError(
                    "Failed to initialize SDK configuration. Check the configuration file and try again!",
                    details={"path": self.config_path, "cause": str(exc)},
                ) from exc

    def _update_upload_format(self, params: Mapping[str, Optional[str]]) -> None:
        value = params.get(CONFIG_KEY_UPLOAD_FORMAT)
        if value is None:
            return
        try:
            self.upload_format = UploadFormat.parse(value)
        except ValueError as exc:
            raise InvalidUploadFormatError(
                f"Unknown value for '{CONFIG_KEY_UPLOAD_FORMAT}'", details={"value": value}
            ) from exc

    def _create_indexing_service(self) -> IndexingService:
        try:
            return self.helper.create_indexing_service()
        except (OSError, ValueError, GoogleAuthError) as exc:
            raise ClientCreationError("failed to create IndexingService", details={"cause": str(exc)}) from exc

    def _require_open(self) -> IndexingService:
        if self.indexing_service is None or self.item_builder is None or self.acl_resolver is None:
            raise IndexWriterError("Index writer is not open")
        return self.indexing_service

    async def write(self, document: CrawlDocument) -> None:
        service = self._require_open()
        started = time.perf_counter()
        url = document.get_text(FIELD_URL)

        try:
            content_type = require_content_type(document)
            payload = select_content(document, self.upload_format, content_type)
            if not document.get_text(FIELD_ID):
                raise ValidationError(f"Document has no '{FIELD_ID}' field", details={"url": url})
        except DocumentError:
            self.stats.rejected += 1
            observe_document("write", "rejected")
            raise

        try:
            item = self.item_builder.build(document, content_type)
            self.acl_resolver.apply(item)
            await service.index_item_and_content(
                item,
                payload,
                None,  # no content hash: push queues are not used
                self.upload_format.content_format,
                RequestMode.ASYNCHRONOUS,
            )
        except Exception as exc:
            self.stats.failed += 1
            observe_document("write", "failed")
            logger.warning("Exception caught while indexing %s: %s", url, exc, exc_info=True)
            return

        elapsed = time.perf_counter() - started
        self.stats.indexed += 1
        observe_document("write", "indexed", elapsed)
        observe_payload_size(payload.length or 0)
        logger.info(
            "Document (%s) indexed (%s / %dms): %s",
            content_type,
            display_size(payload.length),
            int(elapsed * 1000),
            url,
        )

    async def update(self, document: CrawlDocument) -> None:
        await self.write(document)

    async def delete(self, key: str) -> None:
        service = self._require_open()
        if not key:
            raise ValidationError("Cannot delete an item without an id")
        version = str(self.helper.current_time_millis()).encode("ascii")
        await service.delete_item(key, version, RequestMode.ASYNCHRONOUS)
        self.stats.deleted += 1
        observe_document("delete", "deleted")
        logger.debug("Document deleted: %s", key)

    async def commit(self) -> None:
        """Cloud Search has no commit; items are queued as they are written."""

    async def close(self) -> None:
        started = time.perf_counter()
        service = self.indexing_service
        if service is not None and service.is_running():
            await service.stop()
        self.item_builder = None
        self.acl_resolver = None
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info("Shutting down (took: %dms)! Summary: %s", elapsed_ms, self.stats.as_dict())

    @asynccontextmanager
    async def session(self, params: Mapping[str, Optional[str]]) -> AsyncIterator["CloudSearchIndexWriter"]:
        await self.open(params)
        try:
            yield self
        finally:
            await self.close()

    def describe(self) -> str:
        return WRITER_NAME

    @staticmethod
    def describe_options() -> Dict[str, str]:
        return {
            CONFIG_KEY_CONFIG_FILE: "Path to the connector configuration file (required)",
            CONFIG_KEY_UPLOAD_FORMAT: "Content upload format: RAW (base64 binaryContent) or TEXT (content); default RAW",
        }
