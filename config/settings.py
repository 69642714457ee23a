"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically, prefixed with JOBS_ and using
  "__" to reach nested sections:
      JOBS_DATABASE__URL=postgresql://db/emr_jobs → settings.database.url
      JOBS_WORKER__MAX_WORKERS=8                  → settings.worker.max_workers
- Can also read from a .env file in the working directory
- Then from a TOML file (path in JOBS_CONFIG_PATH, default ./jobs.toml):
      [worker]
      max_workers = 8
      poll_interval = 2
- Falls back to the defaults defined here

Precedence, highest first: explicit kwargs, environment, .env, TOML, defaults.

There is no import-time singleton: the worker entry point calls
load_settings() once and passes the result down. A bad value therefore
surfaces as one ConfigurationError at startup instead of an import crash
somewhere deep in the process.
"""

import logging
import os

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from jobs.errors import ConfigurationError


# ── PostgreSQL (job store) ──────────────────────────────────────
class DatabaseSettings(BaseModel):
    url: str = Field(default="postgresql://localhost/emr_jobs", min_length=1)
    max_connections: int = Field(default=10, gt=0)
    min_connections: int = Field(default=1, ge=0)
    connection_timeout: int = Field(default=30, gt=0)  # seconds

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "DatabaseSettings":
        if self.min_connections > self.max_connections:
            raise ValueError("database.min_connections cannot exceed database.max_connections")
        return self


# ── Redis (job queue) ───────────────────────────────────────────
class RedisSettings(BaseModel):
    url: str = Field(default="redis://localhost:6379", min_length=1)
    max_connections: int = Field(default=10, gt=0)
    connection_timeout: int = Field(default=30, gt=0)  # seconds


# ── Worker ──────────────────────────────────────────────────────
class WorkerSettings(BaseModel):
    max_workers: int = Field(default=4, gt=0)       # handler invocations in flight at once
    max_retries: int = Field(default=3, ge=1)       # default max_attempts for new jobs
    retry_delay: int = Field(default=30, ge=0)      # seconds, used when an error kind carries no delay
    job_timeout: int = Field(default=300, gt=0)     # seconds, handed to handlers via JobContext
    poll_interval: float = Field(default=5.0, gt=0)  # seconds between queue polls


# ── Monitoring API ──────────────────────────────────────────────
class MonitoringSettings(BaseModel):
    enabled: bool = True
    metrics_port: int = Field(default=9090, ge=0, le=65535)
    health_check_interval: int = Field(default=30, gt=0)  # seconds between health log lines

    @model_validator(mode="after")
    def _check_port(self) -> "MonitoringSettings":
        if self.enabled and self.metrics_port == 0:
            raise ValueError("monitoring.metrics_port must be greater than 0 when monitoring is enabled")
        return self


class Settings(BaseSettings):
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    # ── App ─────────────────────────────────────────────────────
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="JOBS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_file = os.environ.get("JOBS_CONFIG_PATH", "jobs.toml")
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            file_secret_settings,
        )


def load_settings(**overrides) -> Settings:
    """
    Build and validate the settings.

    Raises:
        ConfigurationError: any invalid or inconsistent value, with every
            problem listed in the message.
    """
    try:
        return Settings(**overrides)
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(problems) from e
