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


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class CSVIngestionSettings:
    """
    Runtime settings for the streaming batch processor.
    """

    batch_size: int = 1000
    write_concurrency: int = 8
    infer_numbers: bool = False
    upload_dir: str = "data/uploads"


@dataclass(frozen=True)
class QueueSettings:
    """
    Redis-backed job queue and broadcast channel settings.
    """

    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "ingestion"
    job_timeout_seconds: int = 3600
    max_retries: int = 3
    retry_backoff_seconds: int = 30
    channel_prefix: str = "ingestion-events"


@dataclass(frozen=True)
class MailSettings:
    """
    SMTP settings for the completion summary e-mail.

    Mail is disabled when no host is configured.
    """

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    sender: str = "no-reply@localhost"
    use_tls: bool = True
    frontend_url: str = "http://localhost:3000"
    timeout_seconds: int = 30

    @property
    def enabled(self) -> bool:
        return self.host is not None


@lru_cache(maxsize=1)
def get_csv_ingestion_settings() -> CSVIngestionSettings:
    """
    Return cached CSV ingestion settings from environment variables.
    """

    return CSVIngestionSettings(
        batch_size=max(1, _get_int_env("CSV_INGEST_BATCH_SIZE", 1000)),
        write_concurrency=max(1, _get_int_env("CSV_INGEST_WRITE_CONCURRENCY", 8)),
        infer_numbers=_get_bool_env("CSV_INGEST_INFER_NUMBERS", False),
        upload_dir=_get_str_env("UPLOAD_STORAGE_DIR", "data/uploads"),
    )


@lru_cache(maxsize=1)
def get_queue_settings() -> QueueSettings:
    """
    Return cached queue/broadcast settings from environment variables.
    """

    return QueueSettings(
        redis_url=_get_str_env("REDIS_URL", "redis://localhost:6379/0"),
        queue_name=_get_str_env("INGEST_QUEUE_NAME", "ingestion"),
        job_timeout_seconds=max(1, _get_int_env("INGEST_JOB_TIMEOUT_SECONDS", 3600)),
        max_retries=max(0, _get_int_env("INGEST_JOB_MAX_RETRIES", 3)),
        retry_backoff_seconds=max(0, _get_int_env("INGEST_JOB_RETRY_BACKOFF_SECONDS", 30)),
        channel_prefix=_get_str_env("BROADCAST_CHANNEL_PREFIX", "ingestion-events"),
    )


@lru_cache(maxsize=1)
def get_mail_settings() -> MailSettings:
    """
    Return cached SMTP settings from environment variables.
    """

    return MailSettings(
        host=_get_optional_str_env("MAIL_HOST"),
        port=max(1, _get_int_env("MAIL_PORT", 587)),
        username=_get_optional_str_env("MAIL_USER"),
        password=_get_optional_str_env("MAIL_PASS"),
        sender=_get_str_env("MAIL_FROM", "no-reply@localhost"),
        use_tls=_get_bool_env("MAIL_USE_TLS", True),
        frontend_url=_get_str_env("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        timeout_seconds=max(1, _get_int_env("MAIL_TIMEOUT_SECONDS", 30)),
    )
