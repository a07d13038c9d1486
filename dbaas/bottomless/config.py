"""
Configuration management for bottomless.

All configuration is done via environment variables so the replicator
can be loaded into a host database process without a config file.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development (MinIO)
    - The page size is fixed at 4096 bytes; other values are rejected
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the LIBSQL_BOTTOMLESS_* names; deployed hosts rely on them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .keys import PAGE_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class S3Config:
    """Object storage configuration.

    Attributes:
        endpoint_url: Storage endpoint URL (MinIO or S3-compatible service)
        bucket: Bucket holding every generation
        region: AWS region
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    endpoint_url: str | None = "http://localhost:9000"
    bucket: str = "bottomless"
    region: str = "us-east-1"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            endpoint_url=os.getenv("LIBSQL_BOTTOMLESS_ENDPOINT", "http://localhost:9000") or None,
            bucket=os.getenv("LIBSQL_BOTTOMLESS_BUCKET", "bottomless"),
            region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class ReplicatorConfig:
    """Replicator session configuration.

    Attributes:
        page_size: Database page size in bytes (fixed at 4096)
        list_page_size: Maximum keys requested per listing call
    """

    page_size: int = PAGE_SIZE
    list_page_size: int = 1000

    @classmethod
    def from_env(cls) -> ReplicatorConfig:
        """Load configuration from environment variables."""
        return cls(
            page_size=int(os.getenv("LIBSQL_BOTTOMLESS_PAGE_SIZE", str(PAGE_SIZE))),
            list_page_size=int(os.getenv("LIBSQL_BOTTOMLESS_LIST_PAGE_SIZE", "1000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class BottomlessConfig:
    """Complete bottomless configuration.

    Attributes:
        s3: Object storage configuration
        replicator: Replicator session configuration
        observability: Logging configuration
    """

    s3: S3Config = field(default_factory=S3Config)
    replicator: ReplicatorConfig = field(default_factory=ReplicatorConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> BottomlessConfig:
        """Load complete configuration from environment variables.

        Returns:
            BottomlessConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            s3=S3Config.from_env(),
            replicator=ReplicatorConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.s3.bucket:
            raise ValueError("LIBSQL_BOTTOMLESS_BUCKET must not be empty")
        if self.replicator.page_size != PAGE_SIZE:
            raise ValueError(
                f"Unsupported page size {self.replicator.page_size}; only {PAGE_SIZE} is supported"
            )
        if self.replicator.list_page_size <= 0:
            raise ValueError("LIBSQL_BOTTOMLESS_LIST_PAGE_SIZE must be positive")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )
        if bool(self.s3.access_key_id) != bool(self.s3.secret_access_key):
            logger.warning(
                "Only one of AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY is set; "
                "falling back to the AWS credential chain"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Bottomless configuration loaded",
            extra={
                "endpoint": self.s3.endpoint_url or "AWS",
                "bucket": self.s3.bucket,
                "region": self.s3.region,
                "credentials": "explicit" if self.s3.access_key_id else "default chain",
                "page_size": self.replicator.page_size,
                "log_level": self.observability.log_level,
            },
        )
