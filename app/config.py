"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class MetricIngestionSettings:
    """
    Runtime settings for metric ingestion jobs.
    """

    batch_size: int = 10
    batch_delay_seconds: float = 0.1
    max_reported_errors: int = 50
    log_validation_errors: bool = True
    delimiter: str = ","


@dataclass(frozen=True)
class NormalizerSettings:
    """
    Alias table source for the key normalizer. ``None`` selects the built-in tables.
    """

    alias_config_path: str | None = None


@dataclass(frozen=True)
class NotifierSettings:
    """
    Change fan-out settings.
    """

    subscriber_buffer: int = 256
    subscriber_retry_seconds: float = 1.0
    changed_by: str = "system"


@lru_cache(maxsize=1)
def get_metric_ingestion_settings() -> MetricIngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    delimiter = _get_str_env("METRIC_INGEST_DELIMITER", ",")
    return MetricIngestionSettings(
        batch_size=max(1, _get_int_env("METRIC_INGEST_BATCH_SIZE", 10)),
        batch_delay_seconds=max(0.0, _get_float_env("METRIC_INGEST_BATCH_DELAY_SECONDS", 0.1)),
        max_reported_errors=max(1, _get_int_env("METRIC_INGEST_MAX_REPORTED_ERRORS", 50)),
        log_validation_errors=_get_bool_env("METRIC_INGEST_LOG_VALIDATION_ERRORS", True),
        delimiter=delimiter[0],
    )


@lru_cache(maxsize=1)
def get_normalizer_settings() -> NormalizerSettings:
    return NormalizerSettings(
        alias_config_path=_get_optional_str_env("METRIC_ALIAS_CONFIG_PATH"),
    )


@lru_cache(maxsize=1)
def get_notifier_settings() -> NotifierSettings:
    """
    Return cached notifier settings from environment variables.
    """

    return NotifierSettings(
        subscriber_buffer=max(1, _get_int_env("METRIC_SUBSCRIBER_BUFFER", 256)),
        subscriber_retry_seconds=max(0.0, _get_float_env("METRIC_SUBSCRIBER_RETRY_SECONDS", 1.0)),
        changed_by=_get_str_env("METRIC_CHANGED_BY", "system"),
    )
