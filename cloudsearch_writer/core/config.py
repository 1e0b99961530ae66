"""
Configuration management for the Cloud Search index writer.

Two layers live here. Process level settings (log level, default config path,
default upload format) come from environment variables through Pydantic's
`BaseSettings`. Connector settings come from the SDK style properties file
named by the ``gcs.config.file`` writer parameter; it is parsed once per
process and held by `ConfigurationManager`.
"""

from __future__ import annotations

import threading
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import javaproperties
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings

from cloudsearch_writer.core.exceptions import ConfigurationError

DEFAULT_CONTENT_UPLOAD_THRESHOLD_BYTES = 100 * 1024


class Settings(BaseSettings):
    """Process configuration sourced from environment variables."""

    APP_NAME: str = "cloudsearch-index-writer"
    LOG_LEVEL: str = Field("INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    CONFIG_FILE: Optional[Path] = None
    UPLOAD_FORMAT: str = "RAW"

    class Config:
        env_prefix = "CLOUDSEARCH_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @field_validator("LOG_LEVEL", mode="before")
    def _upper_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value


@lru_cache()
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


settings = get_settings()


def _split_csv(value: object) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


class SdkConfiguration(BaseModel):
    """Typed view of the connector properties file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    # API access
    source_id: str = Field(..., alias="api.sourceId", min_length=1)
    identity_source_id: Optional[str] = Field(None, alias="api.identitySourceId")
    service_account_private_key_file: Optional[Path] = Field(None, alias="api.serviceAccountPrivateKeyFile")
    root_url: Optional[str] = Field(None, alias="api.rootUrl")
    content_upload_threshold_bytes: PositiveInt = Field(
        DEFAULT_CONTENT_UPLOAD_THRESHOLD_BYTES, alias="api.contentUploadThresholdBytes"
    )
    connector_name: Optional[str] = Field(None, alias="connector.name")

    # Item metadata mapping
    title_field: Optional[str] = Field(None, alias="itemMetadata.title.field")
    title_default: Optional[str] = Field(None, alias="itemMetadata.title.defaultValue")
    update_time_field: Optional[str] = Field(None, alias="itemMetadata.updateTime.field")
    update_time_default: Optional[str] = Field(None, alias="itemMetadata.updateTime.defaultValue")
    create_time_field: Optional[str] = Field(None, alias="itemMetadata.createTime.field")
    create_time_default: Optional[str] = Field(None, alias="itemMetadata.createTime.defaultValue")
    content_language_field: Optional[str] = Field(None, alias="itemMetadata.contentLanguage.field")
    content_language_default: Optional[str] = Field(None, alias="itemMetadata.contentLanguage.defaultValue")
    object_type: Optional[str] = Field(None, alias="itemMetadata.objectType")

    # Default ACL
    default_acl_mode: str = Field("none", alias="defaultAcl.mode")
    default_acl_public: bool = Field(False, alias="defaultAcl.public")
    default_acl_reader_users: List[str] = Field(default_factory=list, alias="defaultAcl.readers.users")
    default_acl_reader_groups: List[str] = Field(default_factory=list, alias="defaultAcl.readers.groups")
    default_acl_denied_users: List[str] = Field(default_factory=list, alias="defaultAcl.denied.users")
    default_acl_denied_groups: List[str] = Field(default_factory=list, alias="defaultAcl.denied.groups")

    @field_validator(
        "default_acl_reader_users",
        "default_acl_reader_groups",
        "default_acl_denied_users",
        "default_acl_denied_groups",
        mode="before",
    )
    def _split_principals(cls, value: object) -> List[str]:
        return _split_csv(value)

    @field_validator("default_acl_mode", mode="before")
    def _normalize_mode(cls, value: object) -> str:
        mode = str(value or "none").strip().lower()
        if mode not in {"none", "fallback", "append", "override"}:
            raise ValueError(f"Unknown defaultAcl.mode: {value!r}")
        return mode

    @field_validator(
        "title_field",
        "title_default",
        "update_time_field",
        "update_time_default",
        "create_time_field",
        "create_time_default",
        "content_language_field",
        "content_language_default",
        "object_type",
        "identity_source_id",
        "root_url",
        mode="before",
    )
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_properties(cls, properties: Dict[str, Optional[str]]) -> "SdkConfiguration":
        values = {key: value for key, value in properties.items() if value is not None}
        return cls.model_validate(values)

    @classmethod
    def from_file(cls, path: str | Path) -> "SdkConfiguration":
        """Parse a Java properties file (ISO-8859-1, `=`, `:` or whitespace separators)."""

        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        with open(config_path, "rb") as handle:
            properties = javaproperties.load(handle)
        return cls.from_properties({key: value.strip() for key, value in properties.items()})


class ConfigurationManager:
    """Owns the process wide connector configuration and its init-once guard."""

    def __init__(self) -> None:
        self._config: Optional[SdkConfiguration] = None
        self._lock = threading.Lock()

    def is_initialized(self) -> bool:
        return self._config is not None

    def initialize(self, path: str | Path) -> SdkConfiguration:
        with self._lock:
            if self._config is None:
                try:
                    self._config = SdkConfiguration.from_file(path)
                except ValueError as exc:
                    raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc
            return self._config

    def get(self) -> SdkConfiguration:
        if self._config is None:
            raise ConfigurationError("Configuration has not been initialized")
        return self._config

    def reset(self) -> None:
        with self._lock:
            self._config = None


# Shared by every writer in the process unless a helper is given its own.
configuration_manager = ConfigurationManager()
