# src/media_uploader/storage/caching_storage.py

from __future__ import annotations

import asyncio
import logging

from ..core.ports import ProgressCallback, StorageClient
from .local_storage import FilePayload, UploadPhase
from .upload_cache import UploadCache

logger = logging.getLogger(__name__)


class CachingStorage:
    """StorageClient wrapper that skips files whose bytes were already stored in the same target."""

    def __init__(self, inner: StorageClient, cache: UploadCache) -> None:
        self.inner = inner
        self.cache = cache

    async def upload(self, payload: FilePayload, on_progress: ProgressCallback) -> str:
        namespace = payload.target
        entry = await asyncio.to_thread(self.cache.lookup, payload.path, namespace)
        if entry is not None:
            on_progress(100, UploadPhase.CACHED)
            return entry.asset_id

        asset_id = await self.inner.upload(payload, on_progress)
        await asyncio.to_thread(self.cache.add, payload.path, namespace, asset_id)
        return asset_id
