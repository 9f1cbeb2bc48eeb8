"""Modular Pydantic Settings v2 configuration.

Settings are split by domain, each with its own environment prefix:

- ``AWS_``          AWS bucket and credentials (HTTP-signed and SDK backends)
- ``S3_``           S3-compatible server (MinIO)
- ``REPLICATION_``  backend selection, concurrency, retries, signing mode
- ``LOG_``          logging

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (optional)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .loader import (
    clear_settings_cache,
    get_aws_settings,
    get_logging_settings,
    get_minio_settings,
    get_replication_settings,
)
from .logs import LoggingSettings
from .replication import ReplicationSettings, SigningMode, StorageBackendType
from .storage import AwsStorageSettings, MinioStorageSettings, ObjectStoreSettings
from .unified import ReplicatorSettings, get_settings

__all__ = [
    "AwsStorageSettings",
    "LoggingSettings",
    "MinioStorageSettings",
    "ObjectStoreSettings",
    "ReplicationSettings",
    "ReplicatorSettings",
    "SigningMode",
    "StorageBackendType",
    "clear_settings_cache",
    "get_aws_settings",
    "get_logging_settings",
    "get_minio_settings",
    "get_replication_settings",
    "get_settings",
]
