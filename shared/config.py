"""
Shared configuration management for the HN API proxy.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(name: str, *legacy: str) -> AliasChoices:
    """Accept HNAPI_-prefixed variables plus the historical unprefixed names."""
    return AliasChoices(name, f"HNAPI_{name.upper()}", *legacy)


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias=_env("env"))
    log_level: str = Field(default="info", validation_alias=_env("log_level"))
    log_referer: bool = Field(default=False, validation_alias=_env("log_referer", "LOG_REFERER"))
    log_useragent: bool = Field(default=False, validation_alias=_env("log_useragent", "LOG_USERAGENT"))
    request_timeout: float = Field(default=29.0, gt=0, validation_alias=_env("request_timeout"))

    # Cache
    cache_ttl: int = Field(default=600, gt=0, validation_alias=_env("cache_ttl", "CACHE_TTL"))
    redis_url: str = Field(default="", validation_alias=_env("redis_url", "REDIS_URL"))
    cache_max_keys: int = Field(default=0, ge=0, validation_alias=_env("cache_max_keys"))

    # Origin
    origin_url: str = Field(
        default="https://hacker-news.firebaseio.com/v0",
        validation_alias=_env("origin_url"),
    )
    origin_timeout: float = Field(default=10.0, gt=0, validation_alias=_env("origin_timeout"))
    origin_max_connections: int = Field(default=50, ge=1, validation_alias=_env("origin_max_connections"))

    # Tree / listing fetch
    comment_timeout: float = Field(default=1.0, gt=0, validation_alias=_env("comment_timeout"))
    list_limit: int = Field(default=30, ge=1, validation_alias=_env("list_limit"))
    list_concurrency: int = Field(default=10, ge=1, validation_alias=_env("list_concurrency"))
    max_page: int = Field(default=10, ge=1, validation_alias=_env("max_page"))


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = Field(default=8000, validation_alias=_env("port", "PORT"))
    host: str = Field(default="0.0.0.0", validation_alias=_env("host"))

    def __init__(self, service_name: str, **kwargs):
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
