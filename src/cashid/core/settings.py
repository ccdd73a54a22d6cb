"""Protocol engine settings and configuration.

This module defines all configuration options for the CashID engine.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    Every component also accepts explicit constructor arguments, so these
    values only act as defaults. Settings can be overridden via environment
    variables or .env files.
    """

    # Service identity forced onto every issued request
    service_domain: str = Field(default="auth.cashid.org", alias="CASHID_DOMAIN")
    service_path: str = Field(default="/api/auth", alias="CASHID_PATH")
    request_scheme: str = Field(default="cashid", alias="CASHID_SCHEME")

    # Actions whose nonce is a client-chosen Unix timestamp
    user_initiated_actions: list[str] = Field(
        default=["delete", "revoke", "logout", "update"],
        alias="CASHID_USER_ACTIONS",
    )
    clock_skew_seconds: int = Field(default=60, alias="CASHID_CLOCK_SKEW_SECONDS")
    user_window_seconds: int = Field(default=900, alias="CASHID_USER_WINDOW_SECONDS")

    # Server-minted nonce range (inclusive) and collision retries
    nonce_max: int = Field(default=999_999_999, alias="CASHID_NONCE_MAX")
    nonce_mint_attempts: int = Field(default=8, alias="CASHID_NONCE_MINT_ATTEMPTS")

    # Network prefix that must not be present on submitted addresses
    address_prefix: str = Field(default="ed25519", alias="CASHID_ADDRESS_PREFIX")

    # Storage backend for issued requests
    storage_backend: Literal["memory", "redis"] = Field(
        default="memory",
        alias="CASHID_STORAGE_BACKEND",
    )
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    redis_key_prefix: str = Field(default="cashid:request:", alias="CASHID_REDIS_KEY_PREFIX")
    request_ttl_seconds: int | None = Field(default=None, alias="CASHID_REQUEST_TTL_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
