"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # API Keys
    tmdb_api_key: Optional[str] = Field(default=None, alias="TMDB_API_KEY")

    # Paths
    output_dir: Path = Field(default=Path("output"), alias="OUTPUT_DIR")

    # Source site
    canonical_host: str = Field(default="letterboxd.com", alias="CANONICAL_HOST")
    short_link_host: str = Field(default="boxd.it", alias="SHORT_LINK_HOST")
    allowed_hosts: list[str] = Field(
        default_factory=lambda: ["letterboxd.com", "www.letterboxd.com", "boxd.it"],
        alias="ALLOWED_HOSTS",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        alias="USER_AGENT",
    )

    # Network
    fetch_timeout_seconds: float = Field(default=15.0, alias="FETCH_TIMEOUT_SECONDS")
    image_fetch_timeout_seconds: float = Field(default=10.0, alias="IMAGE_FETCH_TIMEOUT_SECONDS")
    image_fetch_retries: int = Field(default=2, alias="IMAGE_FETCH_RETRIES")
    image_fetch_retry_delay_seconds: float = Field(default=1.0, alias="IMAGE_FETCH_RETRY_DELAY_SECONDS")

    # Caches
    metadata_cache_ttl_seconds: int = Field(default=30 * 60, alias="METADATA_CACHE_TTL_SECONDS")
    metadata_cache_max_entries: int = Field(default=100, alias="METADATA_CACHE_MAX_ENTRIES")
    image_cache_ttl_seconds: int = Field(default=60 * 60, alias="IMAGE_CACHE_TTL_SECONDS")
    image_cache_max_entries: int = Field(default=50, alias="IMAGE_CACHE_MAX_ENTRIES")
    cache_sweep_interval_seconds: int = Field(default=5 * 60, alias="CACHE_SWEEP_INTERVAL_SECONDS")

    # Render Settings
    render_pool_size: int = Field(default=5, alias="RENDER_POOL_SIZE")
    render_timeout_ms: int = Field(default=30000, alias="RENDER_TIMEOUT_MS")
    render_settle_ms: int = Field(default=500, alias="RENDER_SETTLE_MS")
    template_version: str = Field(default="v1", alias="TEMPLATE_VERSION")

    # Rate limiting (render-from-URL path)
    rate_limit_requests: int = Field(default=10, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    gcp_project_id: Optional[str] = Field(default=None, alias="GCP_PROJECT_ID")

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def tmdb_enabled(self) -> bool:
        """Whether a usable TMDB API key is configured."""
        return bool(self.tmdb_api_key) and self.tmdb_api_key != "your_tmdb_api_key_here"


# Global settings instance
settings = Settings()
