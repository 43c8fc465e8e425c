"""Configuration management for the folder activity audit report."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class SourceSettings(BaseModel):
    endpoint: str | None = Field(
        default=None,
        description="Audit search endpoint accepting ReturnLargeSet session queries",
    )
    token: str | None = Field(default=None, description="Pre-issued bearer token")
    timeout_seconds: float = Field(default=60.0, ge=1, le=600)
    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Transport-level connection retries, independent of throttling backoff.",
    )
    page_size: int = Field(default=5000, ge=1, le=5000)

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value.startswith(("https://", "http://")):
            raise ValueError(f"endpoint must be an http(s) URL, got {value!r}")
        return value.rstrip("/")


class RetrySettings(BaseModel):
    backoff_seconds: float = Field(default=30.0, ge=0, le=3600)
    inter_call_delay_ms: int = Field(default=500, ge=0, le=60_000)
    max_consecutive_throttles: int = Field(default=10, ge=1, le=1000)


class ReportSettings(BaseModel):
    output_path: str = Field(default=".")
    timezone: str | None = Field(
        default=None,
        description="IANA zone for Activity Time; the system zone when unset",
    )


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    report: ReportSettings = Field(default_factory=ReportSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "endpoint": "AUDIT_SOURCE_ENDPOINT",
    "token": "AUDIT_SOURCE_TOKEN",
    "timeout": "AUDIT_SOURCE_TIMEOUT_SECONDS",
    "max_retries": "AUDIT_SOURCE_MAX_RETRIES",
    "page_size": "AUDIT_PAGE_SIZE",
    "backoff": "AUDIT_BACKOFF_SECONDS",
    "inter_call_delay": "AUDIT_INTER_CALL_DELAY_MS",
    "max_throttles": "AUDIT_MAX_CONSECUTIVE_THROTTLES",
    "output_path": "REPORT_OUTPUT_PATH",
    "timezone": "REPORT_TIMEZONE",
}


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    log_file_env = _env_str(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": str(Path(log_file_env).expanduser()) if log_file_env else None,
        },
        "source": {
            "endpoint": _env_str(ENV_KEYS["endpoint"]),
            "token": _env_str(ENV_KEYS["token"]),
            "timeout_seconds": _env_float(
                ENV_KEYS["timeout"],
                SourceSettings().timeout_seconds,
            ),
            "max_retries": _env_int(ENV_KEYS["max_retries"], SourceSettings().max_retries),
            "page_size": _env_int(ENV_KEYS["page_size"], SourceSettings().page_size),
        },
        "retry": {
            "backoff_seconds": _env_float(ENV_KEYS["backoff"], RetrySettings().backoff_seconds),
            "inter_call_delay_ms": _env_int(
                ENV_KEYS["inter_call_delay"],
                RetrySettings().inter_call_delay_ms,
            ),
            "max_consecutive_throttles": _env_int(
                ENV_KEYS["max_throttles"],
                RetrySettings().max_consecutive_throttles,
            ),
        },
        "report": {
            "output_path": str(
                Path(os.getenv(ENV_KEYS["output_path"], ReportSettings().output_path)).expanduser()
            ),
            "timezone": _env_str(ENV_KEYS["timezone"]),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    return settings
