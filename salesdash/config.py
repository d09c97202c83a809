from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DATA_DIR = Path(__file__).resolve().parents[1]
ENV_PREFIX = "SALESDASH_"

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Runtime settings; every field can be overridden by a ``SALESDASH_*`` variable."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_ignore_empty=True, populate_by_name=True, frozen=True)

    data_file: Optional[Path] = None
    rules_file: Optional[Path] = None
    admin_user: str = "admin"
    admin_password: str = "admin"
    department_password: str = Field(default="abcd1234", validation_alias="SALESDASH_DEPT_PASSWORD")
    mock_rows: int = Field(default=1000, ge=1)
    mock_seed: Optional[int] = None
    session_ttl_seconds: int = Field(default=8 * 3600, ge=1)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @field_validator("data_file", "rules_file")
    @classmethod
    def _resolve_path(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None:
            return None
        value = value.expanduser()
        return value if value.is_absolute() else DATA_DIR / value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()]
        return value


def load_settings() -> Settings:
    """Build settings from ``SALESDASH_*`` environment variables."""
    return Settings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
