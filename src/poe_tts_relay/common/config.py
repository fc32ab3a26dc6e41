"""Process-wide relay configuration.

The configuration is built once at startup and handed to the pipeline
explicitly. Sources, lowest to highest precedence: defaults, an optional
YAML file named by ``RELAY_CONFIG``, environment variables (``.env`` is
loaded first without overriding the real environment).
"""
from __future__ import annotations
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from poe_tts_relay.common.errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.poe.com/v1"
DEFAULT_MODEL = "ElevenLabs-v3"

# config key -> environment variable names, first non-empty wins
ENV_KEYS: dict[str, tuple[str, ...]] = {
    "api_key": ("POE_API_KEY", "POE_TOKEN"),
    "base_url": ("POE_BASE_URL",),
    "model": ("POE_MODEL",),
    "max_text_length": ("RELAY_MAX_TEXT_LENGTH",),
    "stream_timeout_s": ("RELAY_STREAM_TIMEOUT_S",),
    "first_byte_timeout_s": ("RELAY_FIRST_BYTE_TIMEOUT_S",),
    "http_timeout_s": ("RELAY_HTTP_TIMEOUT_S",),
    "allowed_origins": ("ALLOWED_ORIGINS",),
    "log_level": ("LOG_LEVEL",),
}


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: SecretStr
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_text_length: int = Field(default=2000, ge=0)
    stream_timeout_s: float = Field(default=60.0, gt=0)
    first_byte_timeout_s: float | None = Field(default=None, gt=0)
    http_timeout_s: float = Field(default=60.0, gt=0)
    allowed_origins: str = "*"
    log_level: str = "INFO"

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def origins(self) -> list[str]:
        return parse_origins(self.allowed_origins)


def parse_origins(raw: str) -> list[str]:
    """Split a comma-separated origin list; ``*`` allows any origin."""
    if raw.strip() == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def load_cfg(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _env_overrides() -> dict[str, str]:
    values: dict[str, str] = {}
    for key, names in ENV_KEYS.items():
        for name in names:
            raw = os.getenv(name, "").strip()
            if raw:
                values[key] = raw
                break
    return values


def _collect_values(path: str | None) -> dict[str, Any]:
    load_dotenv(override=False)
    path = path or os.getenv("RELAY_CONFIG")
    values: dict[str, Any] = {}
    if path:
        if not Path(path).exists():
            raise ConfigurationError(f"Config file not found at {path}")
        values.update(load_cfg(path))
    values.update(_env_overrides())
    return values


def load_origins(path: str | None = None) -> list[str]:
    """CORS origins from the same sources as :func:`load_config`, no credential needed."""
    return parse_origins(str(_collect_values(path).get("allowed_origins", "*")))


def load_config(path: str | None = None) -> RelayConfig:
    """
    Build the relay configuration.

    Args:
        path: YAML config path; defaults to $RELAY_CONFIG when set.

    Raises:
        ConfigurationError: credential missing or a value is malformed.
    """
    values = _collect_values(path)

    api_key = values.get("api_key")
    if not api_key or not str(api_key).strip():
        raise ConfigurationError("Poe API key is not configured (set POE_API_KEY or POE_TOKEN).")
    try:
        return RelayConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid relay configuration: {e}") from e
