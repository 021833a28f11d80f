from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Restaurant POS API"
    app_version: str = "0.1.0"
    environment: str = "local"

    database_url: str = "sqlite+aiosqlite:///./pos.db"
    log_json: bool = False

    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    money_rounding: Literal["half_up", "half_even", "up", "down"] = "half_up"
    currency_symbol: str = "₹"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
