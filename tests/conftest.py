# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from media_uploader.config import Settings
from media_uploader.uploads.upload_scheduler import SchedulerConfig


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings pointing at a per-test tmp directory.

    Built directly rather than from the environment to keep tests isolated.
    """
    data_dir = tmp_path / "data"
    return Settings(
        app_name="media-uploader-test",
        log_level="DEBUG",
        data_dir=data_dir,
        storage_dir=data_dir / "storage",
        cache_enabled=True,
        cache_path=data_dir / "upload_cache.json",
        cache_ttl_seconds=3600,
        max_concurrent=2,
        max_attempts=3,
        base_delay_seconds=0.0,
        chunk_size=4,
    )


@pytest.fixture()
def fast_config() -> SchedulerConfig:
    """Scheduler config with no backoff wait so retry tests run instantly."""
    return SchedulerConfig(max_concurrent=2, max_attempts=3, base_delay_seconds=0.0)
