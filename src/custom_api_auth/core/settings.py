"""Application settings and configuration.

This module defines all configuration options for the auth token service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Custom API Auth", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Secrets. `secret_key` is the HKDF master for the token cipher and MAC;
    # `session_hash_key` is only used to hash nonces before they are stored.
    secret_key: str = Field(alias="SECRET_KEY")
    session_hash_key: str = Field(alias="SESSION_HASH_KEY")

    # Database configuration
    database_url: str = Field(default="sqlite:///./custom_api.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the TTL flag store that throttles the session sweep
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Auth token settings
    token_prefix: str = Field(default="custom_api_auth_token_", alias="TOKEN_PREFIX")
    token_expiration: int = Field(default=604_800, alias="TOKEN_EXPIRATION")  # 7 days
    token_over_https_only: bool = Field(default=False, alias="TOKEN_OVER_HTTPS_ONLY")
    token_cookie_http_only: bool = Field(default=True, alias="TOKEN_COOKIE_HTTP_ONLY")
    token_cookie_same_site: Literal["strict", "lax", "none"] = Field(
        default="strict",
        alias="TOKEN_COOKIE_SAME_SITE",
    )
    token_cookie_path: str = Field(default="/", alias="TOKEN_COOKIE_PATH")
    token_cookie_domain: str | None = Field(default=None, alias="TOKEN_COOKIE_DOMAIN")
    token_header_name: str = Field(default="X-Auth-Nonce", alias="TOKEN_HEADER_NAME")
    token_require_header_nonce: bool = Field(default=True, alias="TOKEN_REQUIRE_HEADER_NONCE")
    default_token_name: str = Field(default="session", alias="DEFAULT_TOKEN_NAME")

    # Minimum number of seconds between two expired-session sweeps
    database_refresh_interval: int = Field(default=3600, alias="DATABASE_REFRESH_INTERVAL")

    # Argon2id password hashing costs
    password_time_cost: int = Field(default=2, alias="PASSWORD_TIME_COST")
    password_memory_cost: int = Field(default=65_536, alias="PASSWORD_MEMORY_COST")
    password_parallelism: int = Field(default=4, alias="PASSWORD_PARALLELISM")
    password_max_bytes: int = Field(default=72, alias="PASSWORD_MAX_BYTES")

    # CORS configuration for browser clients
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("token_cookie_http_only")
    @classmethod
    def validate_http_only(cls, v: bool) -> bool:
        """Auth cookies are never readable from client-side scripts."""
        if not v:
            raise ValueError("TOKEN_COOKIE_HTTP_ONLY cannot be disabled")
        return v

    @field_validator("token_cookie_same_site", mode="before")
    @classmethod
    def normalize_same_site(cls, v: str) -> str:
        """Accept `Strict`/`Lax`/`None` in any case."""
        return v.lower() if isinstance(v, str) else v

    def cookie_name(self, token_name: str) -> str:
        """Return the primary cookie name for a token namespace."""
        return f"{self.token_prefix}{token_name}"

    def refresh_cookie_name(self, token_name: str) -> str:
        """Return the refresh cookie name for a token namespace."""
        return f"{self.token_prefix}{token_name}_refresh"


settings = Settings()  # type: ignore[call-arg]
