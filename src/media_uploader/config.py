# src/media_uploader/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Every value has a working default; nothing is required at import time.
- The scheduler itself never reads the environment; settings are injected.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .uploads.upload_scheduler import SchedulerConfig

ENV_PREFIX = "UPLOADER"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    storage_dir: Path

    # ---- Upload cache ----
    cache_enabled: bool
    cache_path: Path
    cache_ttl_seconds: int

    # ---- Scheduler tuning ----
    max_concurrent: int
    max_attempts: int
    base_delay_seconds: float
    chunk_size: int

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "media-uploader")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/uploader"))
        storage_dir = _env_path(_k("STORAGE_DIR"), data_dir / "storage")

        cache_enabled = _env_bool(_k("CACHE_ENABLED"), True)
        cache_path = _env_path(_k("CACHE_PATH"), data_dir / "upload_cache.json")
        cache_ttl_seconds = _env_int(_k("CACHE_TTL_SECONDS"), 24 * 60 * 60)

        max_concurrent = _env_int(_k("MAX_CONCURRENT"), 3)
        max_attempts = _env_int(_k("MAX_ATTEMPTS"), 3)
        base_delay_seconds = _env_float(_k("BASE_DELAY_SECONDS"), 1.0)
        chunk_size = _env_int(_k("CHUNK_SIZE"), 64 * 1024)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            storage_dir=storage_dir,
            cache_enabled=cache_enabled,
            cache_path=cache_path,
            cache_ttl_seconds=cache_ttl_seconds,
            max_concurrent=max_concurrent,
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
            chunk_size=chunk_size,
        )

    def scheduler_config(self) -> SchedulerConfig:
        return SchedulerConfig(
            max_concurrent=self.max_concurrent,
            max_attempts=self.max_attempts,
            base_delay_seconds=self.base_delay_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
