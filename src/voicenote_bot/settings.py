from __future__ import annotations

"""Runtime configuration for voicenote-bot.

Values are read from an optional YAML file (flat, lower-case keys such as
``bot_apikey``) and overridden by the matching upper-case environment
variables (``BOT_APIKEY``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError
from .recognition.languages import DEFAULT_LANGUAGE, find_language


DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "VOICENOTE_CONFIG"

_KEYS = (
    "bot_apikey",
    "recognizer_uri",
    "recognizer_timeout",
    "preferences_path",
    "preferences_sync_interval",
    "default_language",
    "transcoder_binary",
    "transcoder_timeout",
    "telegram_api_url",
    "telegram_poll_timeout",
    "log_level",
)


@dataclass(frozen=True)
class TelegramSettings:
    token: str
    api_url: str
    poll_timeout: int


@dataclass(frozen=True)
class RecognizerSettings:
    uri: str
    timeout: float


@dataclass(frozen=True)
class TranscoderSettings:
    binary: str
    timeout: float


@dataclass(frozen=True)
class PreferenceSettings:
    path: str
    sync_interval: float
    default_language: str


@dataclass(frozen=True)
class Settings:
    telegram: TelegramSettings
    recognizer: RecognizerSettings
    transcoder: TranscoderSettings
    preferences: PreferenceSettings
    log_level: str


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return {str(key).lower(): value for key, value in data.items()}


def _merge(file_values: Mapping[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    merged = {key: file_values[key] for key in _KEYS if key in file_values}
    for key in _KEYS:
        value = env.get(key.upper())
        if value is not None and value.strip():
            merged[key] = value.strip()
    return merged


def _required(values: Mapping[str, Any], key: str) -> str:
    value = values.get(key)
    if value is None or not str(value).strip():
        raise ConfigError(f"{key.upper()} is required")
    return str(value).strip()


def _number(values: Mapping[str, Any], key: str, default: float, cast=float):
    value = values.get(key)
    if value is None:
        return default
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key.upper()} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{key.upper()} must be positive, got {value!r}")
    return number


def _log_level(values: Mapping[str, Any]) -> str:
    level = str(values.get("log_level") or "INFO").strip().upper()
    # getLevelName maps known names to their numeric level, anything else to a string
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"LOG_LEVEL must be a logging level name, got {level!r}")
    return level


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    *,
    config_path: Optional[str] = None,
) -> Settings:
    """Build :class:`Settings`, raising :class:`ConfigError` on bad input."""

    env = os.environ if env is None else env
    path = Path(config_path or env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    values = _merge(_read_config_file(path), env)

    default_language = str(values.get("default_language") or DEFAULT_LANGUAGE)
    language = find_language(default_language)
    if language is None:
        raise ConfigError(f"DEFAULT_LANGUAGE {default_language!r} is not a supported language")

    return Settings(
        telegram=TelegramSettings(
            token=_required(values, "bot_apikey"),
            api_url=str(values.get("telegram_api_url") or "https://api.telegram.org"),
            poll_timeout=_number(values, "telegram_poll_timeout", 30, cast=int),
        ),
        recognizer=RecognizerSettings(
            uri=_required(values, "recognizer_uri"),
            timeout=_number(values, "recognizer_timeout", 60.0),
        ),
        transcoder=TranscoderSettings(
            binary=str(values.get("transcoder_binary") or "ffmpeg"),
            timeout=_number(values, "transcoder_timeout", 120.0),
        ),
        preferences=PreferenceSettings(
            path=str(values.get("preferences_path") or "data/preferences.txt"),
            sync_interval=_number(values, "preferences_sync_interval", 10.0),
            default_language=language.code,
        ),
        log_level=_log_level(values),
    )


__all__ = [
    "Settings",
    "TelegramSettings",
    "RecognizerSettings",
    "TranscoderSettings",
    "PreferenceSettings",
    "load_settings",
]
