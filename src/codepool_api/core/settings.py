from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./codepool.db"
    db_pool_timeout_seconds: float = 5.0
    db_echo: bool = False

    # Caller credentials (X-API-Key)
    redeem_secret_key: str = ""
    admin_secret_key: str = ""

    # Redemption coordinator
    redeem_timeout_seconds: float = Field(10.0, gt=0)
    redeem_allocation_attempts: int = Field(3, ge=1)
    redeem_lock_backend: Literal["auto", "advisory", "local"] = "auto"
    redeem_conflict_on_replay: bool = True
    # Bounded by the code_redemptions.correlation_id column width.
    correlation_id_max_length: int = Field(128, ge=1, le=128)

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    tracing_enabled: bool = True
    tracing_sample_ratio: float = Field(1.0, ge=0.0, le=1.0)

    @field_validator("redeem_secret_key", "admin_secret_key", mode="before")
    @classmethod
    def _strip_secret(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
