import math
from functools import lru_cache
from typing import Annotated, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_API_URL = "http://localhost:3001/api/v1"


def normalize_api_url(value: str | None) -> str:
    if value is None:
        return DEFAULT_API_URL
    url = str(value).strip().rstrip("/")
    if not url:
        raise ValueError("ATO_API_URL cannot be empty")
    if not url.lower().startswith(("http://", "https://")):
        raise ValueError("ATO_API_URL must start with http:// or https://")
    return url


class Settings(BaseSettings):
    api_url: str = DEFAULT_API_URL
    discovery_poll_interval_seconds: float = 2.0
    execution_poll_interval_seconds: float = 3.0
    # None keeps polling until the server reports a terminal status.
    poll_max_attempts: int | None = None
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 30.0
    http_write_timeout: float = 30.0
    http_pool_timeout: float = 5.0
    verify_ssl: bool = True
    log_level: str = "WARNING"
    log_format: str = "console"
    redact_fields: Annotated[List[str], NoDecode] = ["authorization", "password", "token", "secret", "passwordortoken"]
    redaction_placeholder: str = "***"

    model_config = SettingsConfigDict(
        env_prefix="ATO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("api_url", mode="before")
    @classmethod
    def validate_api_url(cls, value: str | None) -> str:
        return normalize_api_url(value)

    @field_validator(
        "discovery_poll_interval_seconds",
        "execution_poll_interval_seconds",
        "http_connect_timeout",
        "http_read_timeout",
        "http_write_timeout",
        "http_pool_timeout",
        mode="before",
    )
    @classmethod
    def validate_positive_float(cls, value: float | str) -> float:
        float_value = float(value) if isinstance(value, str) else value
        if not math.isfinite(float_value) or float_value <= 0:
            raise ValueError("Value must be a finite number greater than zero")
        return float_value

    @field_validator("poll_max_attempts", mode="before")
    @classmethod
    def validate_max_attempts(cls, value: int | str | None) -> int | None:
        if value is None:
            return None
        if isinstance(value, str):
            if not value.strip():
                return None
            value = int(value.strip())
        if value <= 0:
            raise ValueError("ATO_POLL_MAX_ATTEMPTS must be a positive integer when set")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        level = str(value or "WARNING").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("ATO_LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, value: str | None) -> str:
        fmt = str(value or "console").strip().lower()
        if fmt not in {"console", "json"}:
            raise ValueError("ATO_LOG_FORMAT must be either 'console' or 'json'")
        return fmt

    @field_validator("redact_fields", mode="before")
    @classmethod
    def split_redact_fields(cls, value: List[str] | str | None) -> List[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [item.strip().lower() for item in value if isinstance(item, str) and item.strip()]
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        raise ValueError("Invalid format for ATO_REDACT_FIELDS")

    @field_validator("redaction_placeholder", mode="before")
    @classmethod
    def validate_redaction_placeholder(cls, value: str | None) -> str:
        if value is None:
            return "***"
        placeholder = value.strip()
        if not placeholder:
            raise ValueError("ATO_REDACTION_PLACEHOLDER cannot be empty")
        return placeholder


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
