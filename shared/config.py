"""
Shared configuration management for the Exoplanet Explorer proxy layer.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PREDICT_ENDPOINT = "https://back-557899680969.us-south1.run.app/predict/"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="PROXY_ENV")
    log_level: str = Field(default="info", validation_alias="PROXY_LOG_LEVEL")

    # Listener (local dev server)
    host: str = Field(default="0.0.0.0", validation_alias="PROXY_HOST")
    port: int = Field(default=3001, validation_alias="PORT")
    cors_origins: str = Field(default="*", validation_alias="PROXY_CORS_ORIGINS")

    # Prediction upstream
    predict_endpoint: str = Field(default=DEFAULT_PREDICT_ENDPOINT, validation_alias="PREDICT_ENDPOINT")

    # Chat upstream (both required, otherwise the chat proxy answers 501)
    gemini_api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_api_endpoint: Optional[str] = Field(default=None, validation_alias="GEMINI_API_ENDPOINT")

    # Upstream behaviour
    upstream_timeout_seconds: float = Field(default=25.0, validation_alias="PROXY_UPSTREAM_TIMEOUT_SECONDS")
    archive_cache_ttl_seconds: float = Field(default=300.0, validation_alias="PROXY_ARCHIVE_CACHE_TTL_SECONDS")
    chat_cache_ttl_seconds: float = Field(default=120.0, validation_alias="PROXY_CHAT_CACHE_TTL_SECONDS")

    @property
    def cors_origin_list(self) -> List[str]:
        """Comma separated origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def chat_configured(self) -> bool:
        """Whether both chat secrets are present and non-empty."""
        return bool(self.gemini_api_key) and bool(self.gemini_api_endpoint)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
