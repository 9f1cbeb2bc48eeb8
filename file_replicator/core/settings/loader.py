"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process. The CLI calls these at startup and passes the resulting frozen
objects into the backends and the orchestrator; nothing below the CLI reads
the environment.

Testing:
    In tests, clear the cache to force reload:
    get_replication_settings.cache_clear()

    Or build instances directly:
    settings = ReplicationSettings(backends=["http"])
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .replication import ReplicationSettings
from .storage import AwsStorageSettings, MinioStorageSettings


@lru_cache(maxsize=1)
def get_aws_settings() -> AwsStorageSettings:
    """Get cached AWS storage settings.

    Returns:
        Validated and frozen AwsStorageSettings instance.
    """
    return AwsStorageSettings()


@lru_cache(maxsize=1)
def get_minio_settings() -> MinioStorageSettings:
    """Get cached S3-compatible storage settings.

    Returns:
        Validated and frozen MinioStorageSettings instance.
    """
    return MinioStorageSettings()


@lru_cache(maxsize=1)
def get_replication_settings() -> ReplicationSettings:
    """Get cached replication settings.

    Returns:
        Validated and frozen ReplicationSettings instance.
    """
    return ReplicationSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Drop every cached settings instance."""
    get_aws_settings.cache_clear()
    get_minio_settings.cache_clear()
    get_replication_settings.cache_clear()
    get_logging_settings.cache_clear()

    from .unified import get_settings

    get_settings.cache_clear()
