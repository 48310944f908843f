"""relcache centralized configuration management.

Uses pydantic-settings to load configuration from environment variables
and .env files with validation.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from relcache import constants


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """relcache application settings.

    All settings can be overridden via environment variables
    prefixed with RELCACHE_.

    Example:
        RELCACHE_ACCOUNTS=prod,staging
        RELCACHE_REGIONS=us-east-1,eu-west-1
        RELCACHE_STORE_BACKEND=neo4j
    """

    model_config = SettingsConfigDict(
        env_prefix="RELCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Accounts are AWS profile names; regions are refreshed per account
    accounts: str = Field(default="default", description="Comma-separated AWS profile names")
    regions: str = Field(default="us-east-1", description="Comma-separated AWS regions")

    # Cache store
    store_backend: str = Field(default="memory", description="Cache store backend: memory or neo4j")
    neo4j_uri: str = Field(default="bolt://localhost:7687", description="Neo4j connection URI")
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(default="", description="Neo4j password")

    # Refresh cycle
    refresh_interval: int = Field(default=constants.DEFAULT_REFRESH_INTERVAL, ge=1)
    agent_timeout: int = Field(default=constants.DEFAULT_AGENT_TIMEOUT, ge=1)
    max_agent_workers: int = Field(default=constants.DEFAULT_MAX_AGENT_WORKERS, ge=1)
    aux_fetch_workers: int = Field(default=constants.DEFAULT_AUX_FETCH_WORKERS, ge=1)
    page_size: int = Field(default=constants.DEFAULT_PAGE_SIZE, ge=5, le=100)
    public_image_owner: str = Field(default="amazon", description="Owner alias for public images")

    # API server
    api_host: str = Field(default="127.0.0.1", description="API server bind address")
    api_port: int = Field(default=7002, description="API server port")
    cors_origins: str = Field(
        default="http://localhost:9000,http://127.0.0.1:9000",
        description="Comma-separated allowed CORS origins",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "neo4j"):
            raise ValueError("store_backend must be 'memory' or 'neo4j'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    def get_accounts(self) -> List[str]:
        return _split_csv(self.accounts)

    def get_regions(self) -> List[str]:
        return _split_csv(self.regions)

    def get_cors_origins(self) -> List[str]:
        return _split_csv(self.cors_origins)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
