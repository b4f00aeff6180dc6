"""
Application configuration using Pydantic Settings.
"""

from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BAN_DURATION_SECONDS = 5 * 60


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "KinAPI Ban List"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENABLE_SWAGGER: bool = True
    DOCS_URL: str = "/docs"
    REDOC_URL: str = "/redoc"

    # Document store
    STORE_BACKEND: Literal["github", "memory"] = "github"
    STORE_TIMEOUT_SECONDS: float = 10.0

    # GitHub contents API
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_ACCESS_TOKEN: str = ""
    GITHUB_OWNER: str = "YOUR_GITHUB_USERNAME"
    GITHUB_REPO: str = "KinAPI"
    GITHUB_FILE_PATH: str = "banned_ips.json"
    GITHUB_BRANCH: str = "main"
    GITHUB_COMMITTER_NAME: str | None = None
    GITHUB_COMMITTER_EMAIL: str | None = None

    # Bans
    DEFAULT_BAN_DURATION_SECONDS: int = DEFAULT_BAN_DURATION_SECONDS
    BAN_WRITE_MAX_ATTEMPTS: int = 4
    BAN_CONFLICT_BACKOFF_SECONDS: float = 0.1

    # CORS
    CORS_ORIGINS: List[str] = ["*"]  # Restrict in production!

    # Client address resolution
    TRUST_FORWARDED_FOR: bool = True
    # Proxies in front of the app that append to X-Forwarded-For
    FORWARDED_TRUSTED_HOPS: int = 1

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60

    # Request logging
    API_REQUEST_LOGGING_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
