"""Google Cloud Search indexing client built on the REST discovery API."""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional
from urllib.parse import quote

import google.auth
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import MediaInMemoryUpload

from cloudsearch_writer.core.config import SdkConfiguration
from cloudsearch_writer.core.exceptions import IndexingServiceError
from cloudsearch_writer.integrations.base import ContentFormat, RequestMode
from cloudsearch_writer.models.item import Item, ItemContent, UploadItemRef
from cloudsearch_writer.models.schema import Schema

if TYPE_CHECKING:  # pragma: no cover
    from cloudsearch_writer.indexing.content import ContentPayload

logger = logging.getLogger(__name__)

CLOUD_SEARCH_SCOPES = ["https://www.googleapis.com/auth/cloud_search"]


class ServiceState(str, Enum):
    NEW = "new"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class CloudSearchIndexingService:
    """Indexing client for one Cloud Search data source.

    Requests run on a single worker thread owned by the service: `start()`
    builds the discovery client on it, `stop()` drains it. The underlying
    HTTP transport is not thread safe, so nothing else touches it.
    """

    def __init__(
        self,
        config: SdkConfiguration,
        credentials: Any,
        *,
        service_factory: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.source_id = config.source_id
        self._credentials = credentials
        self._service_factory = service_factory or build
        self._clock = clock
        self._service = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self.state = ServiceState.NEW

    @classmethod
    def from_configuration(cls, config: SdkConfiguration) -> "CloudSearchIndexingService":
        """Load credentials and create the client.

        Raises ``OSError``/``ValueError`` for unreadable or malformed key files
        and ``google.auth.exceptions.DefaultCredentialsError`` when no
        credentials can be found.
        """

        key_file = config.service_account_private_key_file
        if key_file:
            credentials = service_account.Credentials.from_service_account_file(str(key_file), scopes=CLOUD_SEARCH_SCOPES)
        else:
            credentials, _ = google.auth.default(scopes=CLOUD_SEARCH_SCOPES)
        return cls(config, credentials)

    async def start(self) -> None:
        if self.state is not ServiceState.NEW:
            raise IndexingServiceError(f"Cannot start indexing service in state {self.state.value}")
        self.state = ServiceState.STARTING
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloudsearch")
        try:
            self._service = await self._run(self._build_service)
        except Exception:
            self._executor.shutdown(wait=False)
            self.state = ServiceState.TERMINATED
            raise
        self.state = ServiceState.RUNNING
        logger.info("Cloud Search indexing service running for data source %s", self.source_id)

    def _build_service(self):
        options: Dict[str, Any] = {"credentials": self._credentials, "cache_discovery": False}
        if self.config.root_url:
            options["client_options"] = {"api_endpoint": self.config.root_url}
        return self._service_factory("cloudsearch", "v1", **options)

    async def stop(self) -> None:
        if self.state is not ServiceState.RUNNING:
            return
        self.state = ServiceState.STOPPING
        executor = self._executor
        if executor is not None:
            await asyncio.to_thread(executor.shutdown, wait=True)
        close = getattr(self._service, "close", None)
        if callable(close):
            close()
        self._service = None
        self._executor = None
        self.state = ServiceState.TERMINATED
        logger.info("Cloud Search indexing service terminated")

    def is_running(self) -> bool:
        return self.state is ServiceState.RUNNING

    async def _run(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func)

    async def _execute(self, request_factory: Callable[[Any], Any]) -> Dict[str, Any]:
        if not self.is_running():
            raise IndexingServiceError(f"Indexing service is not running (state: {self.state.value})")
        service = self._service
        return await self._run(lambda: request_factory(service).execute())

    def item_resource_name(self, item_id: str) -> str:
        return f"datasources/{self.source_id}/items/{quote(item_id, safe='')}"

    def _current_version(self) -> str:
        return _b64(str(int(self._clock() * 1000)).encode("ascii"))

    async def get_schema(self) -> Schema:
        response = await self._execute(
            lambda service: service.indexing().datasources().getSchema(name=f"datasources/{self.source_id}")
        )
        return Schema.model_validate(response or {})

    async def index_item_and_content(
        self,
        item: Item,
        content: ContentPayload,
        content_hash: Optional[str],
        content_format: ContentFormat,
        request_mode: RequestMode,
    ) -> Dict[str, Any]:
        resource_name = self.item_resource_name(item.name)
        item = item.model_copy(deep=True)
        if item.version is None:
            item.version = self._current_version()

        if content.length is not None and 0 <= content.length <= self.config.content_upload_threshold_bytes:
            item.content = ItemContent(
                content_format=content_format.value,
                inline_content=_b64(content.data),
                hash=content_hash,
            )
        else:
            upload_ref = await self._upload_content(resource_name, content)
            item.content = ItemContent(
                content_format=content_format.value,
                content_data_ref=upload_ref,
                hash=content_hash,
            )

        body: Dict[str, Any] = {"item": {**item.to_api(), "name": resource_name}, "mode": request_mode.value}
        if self.config.connector_name:
            body["connectorName"] = self.config.connector_name
        logger.debug("Indexing %s (%s, %s)", resource_name, content_format.value, request_mode.value)
        return await self._execute(
            lambda service: service.indexing().datasources().items().index(name=resource_name, body=body)
        )

    async def _upload_content(self, resource_name: str, content: ContentPayload) -> UploadItemRef:
        upload_body: Dict[str, Any] = {}
        if self.config.connector_name:
            upload_body["connectorName"] = self.config.connector_name
        ref = await self._execute(
            lambda service: service.indexing().datasources().items().upload(name=resource_name, body=upload_body)
        )
        ref_name = ref["name"]
        media = MediaInMemoryUpload(content.data, mimetype=content.mime_type, resumable=True)
        await self._execute(
            lambda service: service.media().upload(
                resourceName=ref_name,
                body={"resourceName": ref_name},
                media_body=media,
            )
        )
        logger.debug("Uploaded %d bytes of content for %s", len(content.data), resource_name)
        return UploadItemRef(name=ref_name)

    async def delete_item(self, item_id: str, version: bytes, request_mode: RequestMode) -> Dict[str, Any]:
        resource_name = self.item_resource_name(item_id)
        params: Dict[str, Any] = {"name": resource_name, "version": _b64(version), "mode": request_mode.value}
        if self.config.connector_name:
            params["connectorName"] = self.config.connector_name
        return await self._execute(lambda service: service.indexing().datasources().items().delete(**params))
