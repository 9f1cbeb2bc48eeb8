"""Object storage connection settings.

Two S3 targets are configured independently:

- ``AWS_*``: the AWS account used by both the signed HTTP backend and the
  managed SDK backend. Example: AWS_BUCKET="aws-bucket"
- ``S3_*``: the S3-compatible server (MinIO, LocalStack).
  Example: S3_ENDPOINT="http://localhost:9000"

Both share the connection tuning fields of ``ObjectStoreSettings``.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, SecretStr, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_aws_yaml_source, create_minio_yaml_source

DEFAULT_REGION = "us-east-1"


class ObjectStoreSettings(BaseSettings):
    """Connection settings shared by every S3 target."""

    # ──────────────────────────────────────────────────────────────
    # Connection
    # ──────────────────────────────────────────────────────────────

    endpoint: str | None = Field(
        default=None,
        description="S3-compatible endpoint URL. None for AWS S3.",
    )

    bucket: str = Field(
        min_length=3,
        max_length=63,
        description="Bucket that receives replicated files",
    )

    region: str = Field(
        default=DEFAULT_REGION,
        min_length=1,
        description="Region used for the client and for request signing",
    )

    access_key: SecretStr | None = Field(
        default=None,
        description="Access key ID",
    )

    secret_key: SecretStr | None = Field(
        default=None,
        description="Secret access key",
    )

    use_ssl: bool = Field(
        default=True,
        description="Use SSL/TLS for connections",
    )

    verify_ssl: bool = Field(
        default=True,
        description="Verify SSL certificates",
    )

    # ──────────────────────────────────────────────────────────────
    # Client tuning
    # ──────────────────────────────────────────────────────────────

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts inside the SDK client",
    )

    retry_mode: str = Field(
        default="standard",
        description="botocore retry mode: standard, adaptive, or legacy",
    )

    timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Connect and read timeout in seconds",
    )

    max_pool_connections: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Maximum number of pooled connections",
    )

    # ──────────────────────────────────────────────────────────────
    # Validators
    # ──────────────────────────────────────────────────────────────

    @field_validator("retry_mode")
    @classmethod
    def _validate_retry_mode(cls, value: str) -> str:
        """Validate retry_mode is one of the allowed values."""
        allowed_modes = {"standard", "adaptive", "legacy"}
        if value not in allowed_modes:
            raise ValueError(f"retry_mode must be one of {allowed_modes}, got {value}")
        return value

    @model_validator(mode="after")
    def _validate_credential_consistency(self) -> ObjectStoreSettings:
        """Both credentials are provided together or neither."""
        if (self.access_key is None) != (self.secret_key is None):
            raise ValueError(
                "Both access_key and secret_key must be provided together when using "
                "static credentials. Provide both or neither (for the default credential chain)."
            )
        return self

    # ──────────────────────────────────────────────────────────────
    # Computed Properties
    # ──────────────────────────────────────────────────────────────

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_static_credentials(self) -> bool:
        """Check if an access key pair is configured."""
        return self.access_key is not None and self.secret_key is not None

    def get_boto3_config(self) -> dict[str, Any]:
        """Get keyword arguments for an aioboto3 ``session.client("s3", ...)`` call.

        Credentials are only included when both are set; otherwise botocore
        falls back to its default credential chain.
        """
        config: dict[str, Any] = {
            "region_name": self.region,
            "use_ssl": self.use_ssl,
            "verify": self.verify_ssl,
        }

        if self.access_key is not None and self.secret_key is not None:
            config["aws_access_key_id"] = self.access_key.get_secret_value()
            config["aws_secret_access_key"] = self.secret_key.get_secret_value()

        if self.endpoint:
            config["endpoint_url"] = self.endpoint

        return config

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )


class AwsStorageSettings(ObjectStoreSettings):
    """AWS S3 settings for the signed HTTP and managed SDK backends.

    Environment variables use AWS_ prefix.
    Example: AWS_ACCESS_KEY=AKIA... AWS_SECRET_KEY=... AWS_BUCKET=aws-bucket
    """

    bucket: str = Field(
        default="aws-bucket",
        min_length=3,
        max_length=63,
        description="Bucket for the AWS backends",
    )

    http_endpoint_template: str = Field(
        default="https://{bucket}.s3.amazonaws.com",
        description="Base URL of the signed HTTP backend; {bucket} is substituted",
    )

    @field_validator("http_endpoint_template")
    @classmethod
    def _validate_endpoint_template(cls, value: str) -> str:
        """Template must be an absolute http(s) URL."""
        if not value.startswith(("http://", "https://")):
            raise ValueError("http_endpoint_template must start with http:// or https://")
        return value.rstrip("/")

    def http_base_url(self, bucket: str | None = None) -> str:
        """Base URL of the HTTP backend for a bucket."""
        return self.http_endpoint_template.format(bucket=bucket or self.bucket)

    model_config = SettingsConfigDict(
        env_prefix="AWS_",
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
            create_aws_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


class MinioStorageSettings(ObjectStoreSettings):
    """S3-compatible (MinIO) settings.

    Environment variables use S3_ prefix.
    Example: S3_ENDPOINT=http://localhost:9000 S3_BUCKET=minio-bucket
    """

    endpoint: str | None = Field(
        default="http://localhost:9000",
        description="S3-compatible endpoint URL",
    )

    bucket: str = Field(
        default="minio-bucket",
        min_length=3,
        max_length=63,
        description="Bucket on the S3-compatible server",
    )

    access_key: SecretStr | None = Field(
        default=SecretStr("minioadmin"),
        description="Access key ID",
    )

    secret_key: SecretStr | None = Field(
        default=SecretStr("minioadmin"),
        description="Secret access key",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_tls(self) -> bool:
        """Check if the endpoint is served over TLS."""
        return bool(self.endpoint and self.endpoint.startswith("https://"))

    model_config = SettingsConfigDict(
        env_prefix="S3_",
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
            create_minio_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
