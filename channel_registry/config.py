import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="CHANNEL_DATABASE_URL")
    database_pool_size: int = Field(10, alias="CHANNEL_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="CHANNEL_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="CHANNEL_DATABASE_ECHO")
    cron_secret: Optional[str] = Field(None, alias="CRON_SECRET")
    max_batch_writes: int = Field(500, ge=1, le=500, alias="CHANNEL_MAX_BATCH_WRITES")
    transaction_retries: int = Field(2, ge=1, le=10, alias="CHANNEL_TRANSACTION_RETRIES")
    profile_url_prefix: str = Field("/dj/", alias="CHANNEL_PROFILE_URL_PREFIX")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid registry configuration: {exc}") from exc
