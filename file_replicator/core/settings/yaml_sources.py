"""Custom YAML config source with conf.d directory support.

Extends pydantic-settings YamlConfigSettingsSource to support:
- Main YAML file (e.g., conf/replication.yaml)
- conf.d directory merging (e.g., conf/replication.d/*.yaml)
- Alphabetical file ordering in conf.d

YAML is optional; when no files exist the source contributes nothing and
environment variables stay authoritative.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with conf.d directory support.

    Supports the standard Linux conf.d pattern:
    - conf/aws.yaml        (base configuration)
    - conf/aws.d/*.yaml    (override files, merged alphabetically)

    Environment variable can override config directory:
    - AWS_CONFIG_DIR=/custom/path
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str,
        confd_dir: str | None,
        config_dir_env: str,
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        """Initialize the conf.d YAML source.

        Args:
            settings_cls: The settings class being configured.
            yaml_file: Main YAML file name (e.g., "aws.yaml").
            confd_dir: conf.d subdirectory name (e.g., "aws.d"), or None to disable.
            config_dir_env: Environment variable to override base directory.
            base_dir: Default base directory for config files.
            yaml_file_encoding: File encoding for YAML files.
        """
        config_base = Path(os.getenv(config_dir_env, base_dir))

        yaml_files: list[Path] = []

        main_file = config_base / yaml_file
        if main_file.exists():
            yaml_files.append(main_file)

        # Sorted for deterministic merge order
        if confd_dir:
            confd_path = config_base / confd_dir
            if confd_path.is_dir():
                yaml_files.extend(sorted(confd_path.glob("*.yaml")))
                yaml_files.extend(sorted(confd_path.glob("*.yml")))

        self._yaml_files = yaml_files

        super().__init__(
            settings_cls=settings_cls,
            yaml_file=yaml_files if yaml_files else None,
            yaml_file_encoding=yaml_file_encoding,
        )

    def __repr__(self) -> str:
        """Return human-readable summary of configured YAML files."""
        files_str = ", ".join(str(f) for f in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files_str}])"


# ============================================================================
# Convenience factory functions for each settings domain
# ============================================================================


def create_aws_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for AwsStorageSettings.

    Loads from conf/aws.yaml and conf/aws.d/*.yaml.
    Override directory with: AWS_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="aws.yaml",
        confd_dir="aws.d",
        config_dir_env="AWS_CONFIG_DIR",
    )


def create_minio_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for MinioStorageSettings.

    Loads from conf/minio.yaml and conf/minio.d/*.yaml.
    Override directory with: S3_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="minio.yaml",
        confd_dir="minio.d",
        config_dir_env="S3_CONFIG_DIR",
    )


def create_replication_yaml_source(
    settings_cls: type[BaseSettings],
) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for ReplicationSettings.

    Loads from conf/replication.yaml and conf/replication.d/*.yaml.
    Override directory with: REPLICATION_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="replication.yaml",
        confd_dir="replication.d",
        config_dir_env="REPLICATION_CONFIG_DIR",
    )


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for LoggingSettings.

    Loads from conf/logging.yaml and conf/logging.d/*.yaml.
    Override directory with: LOGGING_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="logging.yaml",
        confd_dir="logging.d",
        config_dir_env="LOGGING_CONFIG_DIR",
    )
