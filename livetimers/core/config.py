"""Environment-driven configuration for the Live Timers service.

Every tunable lives on ``AppSettings``. Values come from the process
environment first and then from ``.env`` / ``.env.local`` so a developer can
boot the app without exporting anything.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parents[1]


class AppSettings(BaseSettings):
    """Settings for the HTTP gateway, the stores and the broadcast loop."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Live Timers"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BASE_DIR: Path = Field(default_factory=lambda: PACKAGE_DIR.parent)
    DATA_DIR: Path = Field(default_factory=lambda: PACKAGE_DIR.parent / "data")
    TEMPLATES_DIR: Path = Field(default_factory=lambda: PACKAGE_DIR / "templates")
    STATIC_DIR: Path = Field(default_factory=lambda: PACKAGE_DIR / "static")
    TZ: str = "UTC"

    DB_URL: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "DB_URL"),
    )

    # Bearer tokens (signed, no expiry claim)
    JWT_SECRET: str = "change-me"
    BCRYPT_ROUNDS: int = 10

    # Server-side sessions; the cookie only carries the session id
    APP_SECRET: str = "dev-insecure-secret-change-me"
    SESSION_COOKIE_NAME: str = "lt_session"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7
    TOKEN_COOKIE_NAME: str = "token"

    BROADCAST_INTERVAL_SECONDS: float = 1.0
    BROADCAST_SCOPE: Literal["owner", "all"] = "owner"

    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])

    HOST: str = "0.0.0.0"
    PORT: int = 10000

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() in {"prod", "production"}

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")

    @field_validator("BROADCAST_INTERVAL_SECONDS")
    @classmethod
    def positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("BROADCAST_INTERVAL_SECONDS must be positive")
        return value


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if not settings.DB_URL:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
        settings.DB_URL = f"sqlite:///{settings.DATA_DIR / 'livetimers.db'}"
    return settings


settings = get_settings()
