"""
Configuration management for Redshift Shipper.

Settings come from three places, lowest priority first:

1. Field defaults below
2. Environment variables with the ``REDSHIFT_SHIPPER_`` prefix (or a ``.env`` file)
3. A YAML file handed to :func:`load_settings` (one output instance per file)

The field names mirror the configuration keys the buffering host passes to an
output instance, so an existing output section can be copied into YAML as-is.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog
import yaml
from pydantic import Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

SETTINGS_ENV_FILE = Path(os.getenv("REDSHIFT_SHIPPER_ENV_FILE", ".env")).expanduser()

STRUCTURED_FILE_TYPE = "json"

# file_type -> default delimiter
DEFAULT_DELIMITERS: Dict[str, str] = {
    "json": "\t",
    "tsv": "\t",
    "csv": ",",
}


class ConfigurationError(ValueError):
    """Raised when an output instance cannot be configured."""


def determine_delimiter(file_type: Optional[str]) -> str:
    """
    Map a file type to its default column delimiter.

    Raises:
        ConfigurationError: If the file type is unknown or missing
    """
    try:
        return DEFAULT_DELIMITERS[file_type]  # type: ignore[index]
    except KeyError:
        raise ConfigurationError(f"Invalid file_type:{file_type}.") from None


class ShipperSettings(BaseSettings):
    """
    Settings for one output instance (one Redshift table, one file encoding).

    Environment variables are loaded with the REDSHIFT_SHIPPER_ prefix, e.g.
    REDSHIFT_SHIPPER_REDSHIFT_HOST overrides ``redshift_host``.
    """

    record_log_tag: str = Field(
        default="log", description="Record field holding the log payload"
    )

    # S3
    aws_key_id: str = Field(..., description="AWS access key id")
    aws_sec_key: SecretStr = Field(..., description="AWS secret access key")
    s3_bucket: str = Field(..., description="Destination bucket")
    s3_endpoint: Optional[str] = Field(
        default=None, description="S3 endpoint host or URL (None = AWS default)"
    )
    s3_region: Optional[str] = Field(default=None, description="S3 region name")
    path: str = Field(default="", description="Key prefix inside the bucket")
    timestamp_key_format: str = Field(
        default="year=%Y/month=%m/day=%d/hour=%H/%Y%m%d-%H%M",
        description="strftime pattern used to build object keys",
    )
    utc: bool = Field(default=False, description="Format key timestamps in UTC")

    # Redshift
    redshift_host: str = Field(..., description="Redshift cluster endpoint")
    redshift_port: int = Field(default=5439, description="Redshift port")
    redshift_dbname: str = Field(..., description="Redshift database name")
    redshift_user: str = Field(..., description="Redshift user")
    redshift_password: SecretStr = Field(..., description="Redshift password")
    redshift_tablename: str = Field(
        ..., description="Target table (optionally schema-qualified)"
    )
    redshift_connect_timeout: int = Field(
        default=10, description="Connection timeout in seconds"
    )

    # File format
    file_type: Optional[str] = Field(
        default=None, description="Buffered format: json, tsv or csv"
    )
    delimiter: Optional[str] = Field(
        default=None, description="Column delimiter (derived from file_type if empty)"
    )

    # Diagnostics
    log_suffix: str = Field(
        default="", description="Extra marker attached to every log event"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    max_key_attempts: int = Field(
        default=1000,
        ge=1,
        description="Maximum object key attempts per flush before giving up",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDSHIFT_SHIPPER_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        value = value or ""
        if value == "/":
            return ""
        if value and not value.endswith("/"):
            return f"{value}/"
        return value

    @field_validator("file_type")
    @classmethod
    def _normalize_file_type(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    @model_validator(mode="after")
    def _resolve_delimiter(self) -> "ShipperSettings":
        """Validate file_type and fill in the delimiter it implies."""
        if self.file_type is not None and self.file_type not in DEFAULT_DELIMITERS:
            raise ValueError(f"Invalid file_type:{self.file_type}.")
        if not self.delimiter:
            # ConfigurationError is a ValueError, so pydantic reports it as a
            # regular validation error
            self.delimiter = determine_delimiter(self.file_type)
        if len(self.delimiter) != 1:
            raise ValueError(
                f"delimiter must be a single character, got {self.delimiter!r}"
            )
        return self

    @property
    def is_json(self) -> bool:
        """True when records are encoded against the table schema."""
        return self.file_type == STRUCTURED_FILE_TYPE

    @property
    def s3_endpoint_url(self) -> Optional[str]:
        """Endpoint as a URL boto3 accepts (bare hostnames get https://)."""
        if not self.s3_endpoint:
            return None
        if "://" in self.s3_endpoint:
            return self.s3_endpoint
        return f"https://{self.s3_endpoint}"

    @property
    def db_conf(self) -> Dict[str, Any]:
        """Keyword arguments for psycopg2.connect()."""
        return {
            "host": self.redshift_host,
            "port": self.redshift_port,
            "dbname": self.redshift_dbname,
            "user": self.redshift_user,
            "password": self.redshift_password.get_secret_value(),
            "connect_timeout": self.redshift_connect_timeout,
        }


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error("configuration.file_not_found", config_path=str(config_path))
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        logger.error(
            "configuration.yaml_parse_error",
            config_path=str(config_path),
            error=str(e),
        )
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping, got {type(raw_config).__name__}"
        )
    return raw_config


def load_settings(
    config_path: Optional[Union[str, Path]] = None, **overrides: Any
) -> ShipperSettings:
    """
    Build and validate settings for one output instance.

    Args:
        config_path: Optional YAML file; its keys override environment values
        **overrides: Explicit values, highest priority

    Returns:
        Validated ShipperSettings

    Raises:
        ConfigurationError: If the file is unreadable or validation fails
    """
    values: Dict[str, Any] = {}
    if config_path is not None:
        values.update(_read_yaml(Path(config_path)))
    values.update(overrides)

    try:
        settings = ShipperSettings(**values)
    except ValidationError as e:
        logger.error(
            "configuration.validation_failed",
            config_path=str(config_path) if config_path else None,
            error_count=e.error_count(),
        )
        raise ConfigurationError(f"Configuration validation failed: {e}") from e

    logger.debug(
        "configuration.validated",
        table=settings.redshift_tablename,
        file_type=settings.file_type,
        delimiter=settings.delimiter,
    )
    return settings

