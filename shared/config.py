"""
Shared configuration management for the model query cache.
"""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_QUERY_ENDPOINT = "/api/model"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="MODEL_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class ClientConfig(BaseConfig):
    """Configuration handed to every client, query and mutation call."""

    # Model API
    base_url: str = Field(default="http://localhost:3000")
    endpoint: str = Field(default=DEFAULT_QUERY_ENDPOINT)
    request_timeout: float = Field(default=10.0)

    # Cache behaviour
    logging: bool = Field(default=False, description="Log invalidation and optimistic update decisions")
    invalidate_queries: bool = Field(default=True)
    optimistic_update: bool = Field(default=False)
    check_read_back: bool = Field(default=True)

    def url_for(self, model: str, operation: str) -> str:
        """Build the request URL for a model operation."""
        endpoint = self.endpoint.rstrip("/")
        return f"{self.base_url.rstrip('/')}{endpoint}/{model[:1].lower()}{model[1:]}/{operation}"


def get_config(**overrides: Any) -> ClientConfig:
    """Get client configuration, applying explicit overrides over the environment."""
    return ClientConfig(**overrides)
