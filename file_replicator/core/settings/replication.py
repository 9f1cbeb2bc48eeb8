"""Replication run settings.

Environment variables use REPLICATION_ prefix.
Example: REPLICATION_BACKENDS="http,minio"
         REPLICATION_MAX_CONCURRENT_FILES=8
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .yaml_sources import create_replication_yaml_source


class StorageBackendType(StrEnum):
    """Upload backends a file can be replicated to."""

    HTTP = "http"
    AWS = "aws"
    MINIO = "minio"


class SigningMode(StrEnum):
    """How the request hash inside the SigV4 string-to-sign is built.

    CANONICAL hashes the full canonical request (method, path, query,
    signed headers, payload hash). CONTENT_ONLY uses the bare payload hash,
    which strict S3 servers reject.
    """

    CANONICAL = "canonical"
    CONTENT_ONLY = "content-only"


class ReplicationSettings(BaseSettings):
    """Settings for the multi-backend replication orchestrator."""

    backends: Annotated[list[StorageBackendType], NoDecode] = Field(
        default_factory=lambda: list(StorageBackendType),
        min_length=1,
        description="Backends every file is replicated to",
    )

    max_concurrent_files: int = Field(
        default=4,
        ge=1,
        le=256,
        description="Maximum number of files replicated at the same time",
    )

    backend_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Extra attempts per backend upload after a retryable failure",
    )

    retry_initial_delay: float = Field(
        default=0.5,
        ge=0.0,
        le=60.0,
        description="Delay in seconds before the first retry (exponential backoff)",
    )

    retry_max_delay: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Upper bound for a single backoff delay in seconds",
    )

    signing_mode: SigningMode = Field(
        default=SigningMode.CANONICAL,
        description="String-to-sign construction for the HTTP backend",
    )

    @field_validator("backends", mode="before")
    @classmethod
    def _parse_backends(cls, value: Any) -> list[str]:
        """Parse comma-separated backend names from env var."""
        if isinstance(value, str):
            if value.startswith("["):
                return [str(item) for item in json.loads(value)]
            return [name.strip().lower() for name in value.split(",") if name.strip()]
        return list(value) if value else []

    @field_validator("backends")
    @classmethod
    def _dedupe_backends(cls, value: list[StorageBackendType]) -> list[StorageBackendType]:
        """Keep the first occurrence of each backend, preserving order."""
        return list(dict.fromkeys(value))

    model_config = SettingsConfigDict(
        env_prefix="REPLICATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_replication_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
