from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "AgroStock API"
    api_v1_prefix: str = "/api/v1"
    database_url: str = Field(
        default="sqlite:///./agrostock.db",
        validation_alias=AliasChoices("DB__CONN", "database_url"),
        description="SQLAlchemy compatible database URL",
    )
    echo_sql: bool = Field(default=False, validation_alias=AliasChoices("DB__ECHO", "echo_sql"))
    default_page_size: int = 50
    max_page_size: int = 200
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    log_level: str = "INFO"
    log_json: bool = False

    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False

    default_reorder_level: int = Field(default=10, ge=0)
    default_unit: str = "kg"
    movement_timeout_seconds: float = Field(default=10.0, gt=0)
    movement_max_retries: int = Field(default=3, ge=0)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
