# src/media_uploader/storage/upload_cache.py

"""
Content-hash cache of files that were already uploaded.

Entries are keyed by "<namespace>_<sha256>" so the same bytes uploaded into two
different targets are tracked separately. Entries expire after ttl_seconds.
The cache is optional sugar on top of a storage client: any failure here is
logged and the upload proceeds as if the cache missed.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
_HASH_CHUNK = 1024 * 1024


@dataclass(slots=True, frozen=True)
class CacheEntry:
    file_hash: str
    file_name: str
    file_size: int
    asset_id: str
    namespace: str
    timestamp: float


@dataclass(slots=True, frozen=True)
class CacheStats:
    total: int
    total_size: int
    oldest_entry: float | None


def file_hash(path: str | Path) -> str:
    h = hashlib.sha256()
    with Path(path).open("rb") as f:
        for block in iter(lambda: f.read(_HASH_CHUNK), b""):
            h.update(block)
    return h.hexdigest()


class UploadCache:
    def __init__(
        self,
        path: str | Path | None = None,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        # Lookups/adds run in worker threads while several uploads are in flight.
        self._lock = threading.RLock()
        self._load()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _key(namespace: str, digest: str) -> str:
        return f"{namespace}_{digest}"

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl_seconds

    def lookup(self, path: str | Path, namespace: str) -> CacheEntry | None:
        try:
            digest = file_hash(path)
        except OSError:
            logger.exception("Cache lookup failed for %s", path)
            return None

        key = self._key(namespace, digest)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._expired(entry, self._clock()):
                logger.info("Cache entry expired: %s", entry.file_name)
                del self._entries[key]
                self._save()
                return None

        logger.info("Cache hit: %s -> %s", entry.file_name, entry.asset_id)
        return entry

    def add(self, path: str | Path, namespace: str, asset_id: str) -> CacheEntry | None:
        p = Path(path)
        try:
            digest = file_hash(p)
            size = p.stat().st_size
        except OSError:
            logger.exception("Cache add failed for %s", p)
            return None

        entry = CacheEntry(
            file_hash=digest,
            file_name=p.name,
            file_size=size,
            asset_id=asset_id,
            namespace=namespace,
            timestamp=self._clock(),
        )
        with self._lock:
            self._entries[self._key(namespace, digest)] = entry
            self._save()
        return entry

    def clean_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if self._expired(e, now)]
            for k in stale:
                del self._entries[k]
            if stale:
                logger.info("Removed %d expired cache entries", len(stale))
                self._save()
        return len(stale)

    def stats(self) -> CacheStats:
        with self._lock:
            entries = list(self._entries.values())
        return CacheStats(
            total=len(entries),
            total_size=sum(e.file_size for e in entries),
            oldest_entry=min((e.timestamp for e in entries), default=None),
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            if self.path is not None:
                with contextlib.suppress(FileNotFoundError):
                    self.path.unlink()
        logger.info("Upload cache cleared")

    # ---- persistence ----

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("cache file must contain a JSON object")
            self._entries = {str(k): CacheEntry(**v) for k, v in data.items()}
            logger.info("Loaded %d cache entries from %s", len(self._entries), self.path)
        except Exception:
            logger.exception("Failed to load upload cache from %s", self.path)
            self._entries = {}

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            payload = {k: asdict(e) for k, e in self._entries.items()}
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self.path)
        except OSError:
            logger.exception("Failed to save upload cache to %s", self.path)
