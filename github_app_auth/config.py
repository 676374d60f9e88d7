from __future__ import annotations

from enum import StrEnum

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# GitHub rejects app JWTs whose lifetime exceeds ten minutes
MAX_JWT_TTL = 600


class LogFormat(StrEnum):
    TEXT = "text"
    JSON = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GITHUB_APP_AUTH_", env_file=".env", env_file_encoding="utf-8")

    # GitHub API
    github_api_url: str = "https://api.github.com"
    request_timeout: float = 30.0

    # App JWT (assertion)
    jwt_algorithm: str = "RS256"
    jwt_clock_skew: int = Field(default=60, ge=0)
    jwt_ttl: int = Field(default=MAX_JWT_TTL, gt=0, le=MAX_JWT_TTL)

    # Installation tokens
    token_safety_margin: float = Field(default=120.0, ge=0)
    fallback_token_ttl: float = 3300.0  # 1h minus a margin, used when expires_at is missing
    serve_stale_on_error: bool = False

    # Exchange retries (5xx, 429, network)
    exchange_max_attempts: int = Field(default=3, ge=1)
    exchange_backoff_base: float = Field(default=0.5, ge=0)
    exchange_backoff_max: float = Field(default=30.0, ge=0)

    # Secret directory used by the command line entry point
    secrets_dir: str = "/var/run/secrets/github-app"

    # Logging
    log_format: LogFormat = LogFormat.TEXT
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _validate_config(self) -> Settings:
        if not self.github_api_url.startswith(("http://", "https://")):
            raise ValueError("GITHUB_APP_AUTH_GITHUB_API_URL must be an http(s) URL")
        if self.fallback_token_ttl <= self.token_safety_margin:
            raise ValueError("GITHUB_APP_AUTH_FALLBACK_TOKEN_TTL must be larger than the token safety margin")
        if self.exchange_backoff_max < self.exchange_backoff_base:
            raise ValueError("GITHUB_APP_AUTH_EXCHANGE_BACKOFF_MAX must not be below the backoff base")
        return self


settings: Settings | None = None


def get_settings() -> Settings:
    global settings
    if settings is None:
        settings = Settings()
    return settings


def override_settings(s: Settings) -> None:
    global settings
    settings = s


def reset_settings() -> None:
    global settings
    settings = None
