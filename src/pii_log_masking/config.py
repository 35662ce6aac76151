"""Configuration management for PII log masking."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from pii_log_masking.engine import PiiMasker
from pii_log_masking.fields import DEFAULT_MAX_RECURSION_DEPTH, DEFAULT_SCAN_WINDOW
from pii_log_masking.status import StatusListener

_config_logger = logging.getLogger(__name__)

DEFAULT_MAX_ARGUMENT_BYTES = 500 * 1024


class MaskingSettings(BaseModel):
    masked_fields: str | None = Field(
        default=None,
        description="Comma separated, case-sensitive field names to redact",
    )
    mask_token: str | None = Field(default=None, description="Replacement for redacted values")
    max_recursion_depth: int = Field(default=DEFAULT_MAX_RECURSION_DEPTH, ge=1, le=64)
    scan_window: int = Field(default=DEFAULT_SCAN_WINDOW, ge=1, le=10_000_000)
    max_argument_bytes: int = Field(default=DEFAULT_MAX_ARGUMENT_BYTES, ge=1024)

    @field_validator("masked_fields", mode="before")
    @classmethod
    def _join_field_list(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ",".join(str(item) for item in value)
        return value


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")
    pretty_print: bool = Field(default=False)


class Settings(BaseModel):
    masking: MaskingSettings = Field(default_factory=MaskingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_KEYS = {
    "config_file": "PII_MASKING_CONFIG",
    "masked_fields": "PII_MASKED_FIELDS",
    "mask_token": "PII_MASK_TOKEN",
    "max_recursion_depth": "PII_MAX_RECURSION_DEPTH",
    "scan_window": "PII_SCAN_WINDOW",
    "max_argument_bytes": "PII_MAX_ARGUMENT_BYTES",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "log_pretty_print": "LOG_PRETTY_PRINT",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


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


def load_masking_file(path: str) -> dict[str, object]:
    """Read the ``masking``/``logging`` sections of a YAML config file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Masking config file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Masking config file must contain a mapping: {config_path}")

    masking = dict(data.get("masking") or {})
    if "fields" in masking:
        masking["masked_fields"] = masking.pop("fields")
    return {
        "masking": masking,
        "logging": dict(data.get("logging") or {}),
    }


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv()
    config_file = os.getenv(ENV_KEYS["config_file"])
    file_data = load_masking_file(config_file) if config_file else {}
    masking_file: dict[str, Any] = dict(file_data.get("masking") or {})
    logging_file: dict[str, Any] = dict(file_data.get("logging") or {})

    try:
        masking_defaults = MaskingSettings.model_validate(masking_file)
        logging_defaults = LoggingSettings.model_validate(logging_file)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration file {config_file}: {exc}") from exc

    settings_data: dict[str, object] = {
        "masking": {
            "masked_fields": os.getenv(
                ENV_KEYS["masked_fields"], masking_defaults.masked_fields
            ),
            "mask_token": os.getenv(ENV_KEYS["mask_token"], masking_defaults.mask_token),
            "max_recursion_depth": _env_int(
                ENV_KEYS["max_recursion_depth"],
                masking_defaults.max_recursion_depth,
            ),
            "scan_window": _env_int(ENV_KEYS["scan_window"], masking_defaults.scan_window),
            "max_argument_bytes": _env_int(
                ENV_KEYS["max_argument_bytes"],
                masking_defaults.max_argument_bytes,
            ),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], logging_defaults.level),
            "file": os.getenv(ENV_KEYS["log_file"], logging_defaults.file),
            "pretty_print": _env_bool(
                ENV_KEYS["log_pretty_print"],
                logging_defaults.pretty_print,
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc


def build_masker(
    settings: MaskingSettings,
    *,
    status_listener: StatusListener | None = None,
) -> PiiMasker:
    """Create and start a masker; raises ``ConfigError`` when misconfigured."""
    masker = PiiMasker(
        settings.masked_fields,
        settings.mask_token,
        max_recursion_depth=settings.max_recursion_depth,
        scan_window=settings.scan_window,
        status_listener=status_listener,
    )
    masker.start()
    return masker
