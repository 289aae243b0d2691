"""
Centralized application settings using Pydantic.

Settings are read once by the entry point from the YAML config file, the
environment (``OCRTOOLS_`` prefix, ``__`` for nested sections) and ``.env``,
then handed explicitly to the client and the batch runner.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from perobatch.core.exceptions import ConfigError

CONFIG_FILE_NAMES = (".ocrtools.yml", ".ocrtools.yaml")
DEFAULT_ENDPOINT = "https://pero-ocr.fit.vutbr.cz/api/"
DEFAULT_API_KEY = "api-key-here"


class PeroSettings(BaseModel):
    """OCR service connection."""

    api_key: SecretStr = SecretStr(DEFAULT_API_KEY)
    endpoint: str = DEFAULT_ENDPOINT
    default_engine: int = 1

    @field_validator("endpoint")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        # relative paths are joined onto the endpoint
        value = value.strip()
        if not value:
            raise ValueError("endpoint must not be empty")
        return value if value.endswith("/") else value + "/"


class BatchSettings(BaseModel):
    """Upload, polling and download behaviour."""

    poll_interval_seconds: float = Field(default=60.0, ge=0)
    max_polls: Optional[int] = Field(default=None, ge=1)
    max_poll_duration_seconds: Optional[float] = Field(default=None, gt=0)
    backoff: Literal["fixed", "exponential"] = "fixed"
    backoff_max_seconds: float = Field(default=600.0, gt=0)
    status_timeout_seconds: float = Field(default=1800.0, gt=0)
    request_timeout_seconds: float = Field(default=120.0, gt=0)
    upload_settle_seconds: float = Field(default=1.0, ge=0)
    log_file_name: str = "ocr_log.txt"
    done_states: list[str] = Field(default_factory=lambda: ["PROCESSED"])
    failed_states: list[str] = Field(
        default_factory=lambda: ["FAILED", "ERROR", "CANCELED", "CANCELLED"]
    )


class Settings(BaseSettings):
    """Top-level settings, mirrors the layout of ``.ocrtools.yml``."""

    pero: PeroSettings = Field(default_factory=PeroSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    model_config = SettingsConfigDict(
        env_prefix="OCRTOOLS_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )


def default_config_document() -> dict[str, Any]:
    """Content written when no config file exists yet."""
    return {
        "pero": {
            "api_key": DEFAULT_API_KEY,
            "endpoint": DEFAULT_ENDPOINT,
            "default_engine": 1,
        }
    }


def find_config_file(cwd: Optional[Path] = None, home: Optional[Path] = None) -> Optional[Path]:
    """Locate the config file: current directory first, then home."""
    search = [cwd or Path.cwd(), home or Path.home()]
    for directory in search:
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def write_default_config(home: Optional[Path] = None) -> Path:
    """Write the default config into the home directory and return its path."""
    path = (home or Path.home()) / CONFIG_FILE_NAMES[0]
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(default_config_document(), f, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"cannot create default config {path}: {e}", str(path)) from e
    return path


def read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}", str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"please check your config {path}: {e}", str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"please check your config {path}: top level must be a mapping", str(path))
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> Settings:
    """Build Settings from a YAML file plus explicit overrides.

    Args:
        config_path: YAML file to read; None means environment and defaults only.
        overrides: Nested mapping applied on top of the file (CLI flags).

    Raises:
        ConfigError: The file cannot be read or fails validation.
    """
    data: dict[str, Any] = read_config_file(config_path) if config_path else {}
    if overrides:
        data = _deep_merge(data, overrides)
    try:
        return Settings(**data)
    except ValidationError as e:
        where = str(config_path) if config_path else "environment"
        raise ConfigError(f"please check your config {where}: {e}", str(config_path) if config_path else None) from e
