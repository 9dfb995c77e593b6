from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    APP_ENV: str = "local"
    STORAGE_BACKEND: Literal["local", "r2"] = "local"
    DATA_FILE: str = "data/recipes.json"

    R2_ACCOUNT_ID: Optional[str] = None
    R2_ACCESS_KEY_ID: Optional[str] = None
    R2_SECRET_ACCESS_KEY: Optional[str] = None
    R2_BUCKET_NAME: Optional[str] = None
    R2_OBJECT_KEY: str = "recipes.json"

    STORAGE_READ_RETRIES: int = Field(default=3, ge=0)
    STORAGE_READ_BACKOFF_SECONDS: float = Field(default=0.2, ge=0)
    UPDATE_MAX_ATTEMPTS: int = Field(default=1, ge=1)

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    STATIC_DIR: str = "public"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
    )


settings = Settings()
