"""
Unit tests for server configuration.

Tests cover:
- Defaults
- Environment variable loading
- Validation of inconsistent settings
"""

import pytest

from vssd.vss_server.config import (
    HttpConfig,
    ListingConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults_are_valid(self, tmp_path):
        config = ServerConfig(storage=StorageConfig(data_dir=str(tmp_path)))
        config.validate()

        assert config.http.port == 8080
        assert config.listing.default_page_size == 100
        assert config.listing.max_page_size == 1000
        assert config.storage.wal_mode is True

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VSS_HTTP_HOST", "127.0.0.1")
        monkeypatch.setenv("VSS_HTTP_PORT", "9090")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("SQLITE_WAL_MODE", "false")
        monkeypatch.setenv("LIST_DEFAULT_PAGE_SIZE", "10")
        monkeypatch.setenv("LIST_MAX_PAGE_SIZE", "50")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = ServerConfig.from_env()

        assert config.http.host == "127.0.0.1"
        assert config.http.port == 9090
        assert config.storage.data_dir == str(tmp_path)
        assert config.storage.wal_mode is False
        assert config.listing.default_page_size == 10
        assert config.listing.max_page_size == 50
        assert config.observability.log_format == "text"

    def test_from_env_rejects_invalid(self, monkeypatch):
        monkeypatch.setenv("LIST_DEFAULT_PAGE_SIZE", "500")
        monkeypatch.setenv("LIST_MAX_PAGE_SIZE", "100")

        with pytest.raises(ValueError):
            ServerConfig.from_env()

    @pytest.mark.parametrize(
        "config",
        [
            ServerConfig(http=HttpConfig(port=0)),
            ServerConfig(listing=ListingConfig(max_page_size=0)),
            ServerConfig(listing=ListingConfig(default_page_size=0)),
            ServerConfig(observability=ObservabilityConfig(log_format="xml")),
        ],
    )
    def test_validate_rejects(self, config):
        with pytest.raises(ValueError):
            config.validate()

    def test_sections_are_frozen(self):
        config = HttpConfig()
        with pytest.raises(AttributeError):
            config.port = 1
