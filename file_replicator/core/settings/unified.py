"""Unified settings composition.

``ReplicatorSettings`` bundles every domain so the CLI can build one frozen
configuration object at startup and hand it to the factory and the
orchestrator. Each nested settings class still loads from its own
environment prefix (AWS_, S3_, REPLICATION_, LOG_).

Usage:
    from file_replicator.core.settings import get_settings

    settings = get_settings()
    print(settings.aws.bucket)
    print(settings.replication.max_concurrent_files)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .loader import (
    get_aws_settings,
    get_logging_settings,
    get_minio_settings,
    get_replication_settings,
)
from .logs import LoggingSettings
from .replication import ReplicationSettings
from .storage import AwsStorageSettings, MinioStorageSettings


class ReplicatorSettings(BaseSettings):
    """Unified settings composing all domain settings.

    Example:
        settings = ReplicatorSettings(
            replication=ReplicationSettings(backends=["http"]),
        )
        assert settings.aws.region == "us-east-1"
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra="ignore",
    )

    aws: AwsStorageSettings = Field(default_factory=get_aws_settings)
    minio: MinioStorageSettings = Field(default_factory=get_minio_settings)
    replication: ReplicationSettings = Field(default_factory=get_replication_settings)
    logging: LoggingSettings = Field(default_factory=get_logging_settings)


@lru_cache(maxsize=1)
def get_settings() -> ReplicatorSettings:
    """Get unified settings instance (cached).

    Returns:
        ReplicatorSettings with all domain configurations.
    """
    return ReplicatorSettings()
