from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Roomcast API"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./roomcast.db"
    auto_create_tables: bool = True

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    api_prefix: str = "/api/v1"
    default_page_size: int = Field(default=10, ge=1)
    entity_locking: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
