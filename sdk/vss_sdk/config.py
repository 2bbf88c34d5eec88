"""
Configuration for the VSS SDK.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment."""

    # VSS server connection
    host: str = Field(default="localhost", description="VSS HTTP server host")
    port: int = Field(default=8080, description="VSS HTTP server port")
    scheme: str = Field(default="http", description="URL scheme (http or https)")

    timeout: float = Field(default=30.0, description="Request timeout seconds")

    # Listing
    page_size: int | None = Field(default=None, description="Page size requested by listings")

    model_config = {"env_prefix": "VSS_"}

    @property
    def base_url(self) -> str:
        """Full VSS server URL."""
        return f"{self.scheme}://{self.host}:{self.port}"
