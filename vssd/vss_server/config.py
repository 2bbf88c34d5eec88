"""
Configuration management for the VSS server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set an explicit DATA_DIR
    - The listing page size is always bounded by LIST_MAX_PAGE_SIZE

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind the HTTP server
        port: Port to listen on
        max_request_bytes: Maximum accepted request body size
    """

    host: str = "0.0.0.0"
    port: int = 8080
    max_request_bytes: int = 16 * 1024 * 1024  # 16MB

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("VSS_HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("VSS_HTTP_PORT", "8080")),
            max_request_bytes=int(os.getenv("VSS_MAX_REQUEST_BYTES", str(16 * 1024 * 1024))),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory holding one SQLite file per store
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "/var/lib/vss"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/vss"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class ListingConfig:
    """ListKeyVersions paging limits.

    Attributes:
        default_page_size: Page size used when the client sends none (or 0)
        max_page_size: Upper bound applied regardless of the client request
    """

    default_page_size: int = 100
    max_page_size: int = 1000

    @classmethod
    def from_env(cls) -> ListingConfig:
        """Load configuration from environment variables."""
        return cls(
            default_page_size=int(os.getenv("LIST_DEFAULT_PAGE_SIZE", "100")),
            max_page_size=int(os.getenv("LIST_MAX_PAGE_SIZE", "1000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        http: HTTP server configuration
        storage: Local storage configuration
        listing: Listing page size limits
        observability: Logging configuration
    """

    http: HttpConfig = field(default_factory=HttpConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            http=HttpConfig.from_env(),
            storage=StorageConfig.from_env(),
            listing=ListingConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0 < self.http.port < 65536:
            raise ValueError(f"VSS_HTTP_PORT out of range: {self.http.port}")

        if self.listing.max_page_size <= 0:
            raise ValueError("LIST_MAX_PAGE_SIZE must be positive")
        if not 0 < self.listing.default_page_size <= self.listing.max_page_size:
            raise ValueError(
                "LIST_DEFAULT_PAGE_SIZE must be positive and not exceed LIST_MAX_PAGE_SIZE"
            )

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on startup."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "http_bind": f"{self.http.host}:{self.http.port}",
                "data_dir": self.storage.data_dir,
                "wal_mode": self.storage.wal_mode,
                "list_default_page_size": self.listing.default_page_size,
                "list_max_page_size": self.listing.max_page_size,
                "log_level": self.observability.log_level,
            },
        )
