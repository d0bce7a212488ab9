"""Primitive process settings read from the environment and .env files.

Everything structured lives in config.yaml (see ``runtime.config``); this
model only carries the handful of values needed to locate and post-process
that file.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentVariables(BaseSettings):
    """Simple primitive values loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = Field(
        default="development", validation_alias="APP_ENVIRONMENT"
    )
    log_level: str | None = Field(default=None, validation_alias="LOG_LEVEL")
    config_file: str = Field(default="config.yaml", validation_alias="CONFIG_FILE")

    # Bare host:port address, used when REDIS_URL is not given
    redis_addr: str | None = Field(default=None, validation_alias="REDIS_ADDR")
