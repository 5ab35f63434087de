# src/media_uploader/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- ensures local (gitignored) directories exist,
- wires the concrete storage client (optionally behind the upload cache),
- builds the UploadScheduler from settings.
"""

from __future__ import annotations

import dataclasses
import logging

from ..config import Settings, get_settings
from ..core.ports import StorageClient
from ..storage.caching_storage import CachingStorage
from ..storage.local_storage import LocalDirectoryStorage
from ..storage.upload_cache import UploadCache
from ..uploads.upload_scheduler import UploadScheduler

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.storage_dir.mkdir(parents=True, exist_ok=True)
    if settings.cache_enabled:
        settings.cache_path.parent.mkdir(parents=True, exist_ok=True)


def create_storage(settings: Settings) -> StorageClient:
    storage: StorageClient = LocalDirectoryStorage(
        settings.storage_dir, chunk_size=settings.chunk_size
    )
    if not settings.cache_enabled:
        return storage

    cache = UploadCache(settings.cache_path, ttl_seconds=settings.cache_ttl_seconds)
    cache.clean_expired()
    return CachingStorage(storage, cache)


def create_scheduler(*, settings: Settings | None = None, **overrides) -> UploadScheduler:
    """
    Build an UploadScheduler from settings.

    Keyword overrides replace individual Settings fields (e.g. max_concurrent=8)
    without touching the environment. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    _ensure_local_dirs(settings)

    config = settings.scheduler_config()
    logger.debug(
        "Scheduler config: max_concurrent=%d max_attempts=%d base_delay=%.2fs storage=%s cache=%s",
        config.max_concurrent,
        config.max_attempts,
        config.base_delay_seconds,
        settings.storage_dir,
        settings.cache_enabled,
    )
    return UploadScheduler(create_storage(settings), config=config)
