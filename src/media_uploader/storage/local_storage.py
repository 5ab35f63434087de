# src/media_uploader/storage/local_storage.py

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path, PurePosixPath

from ..core.ports import ProgressCallback
from ..errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
_ID_DIGEST_LEN = 12


class UploadPhase(StrEnum):
    PREPARE = "prepare"
    TRANSFER = "transfer"
    FINALIZE = "finalize"
    CACHED = "cached"


@dataclass(slots=True, frozen=True)
class FilePayload:
    """A local file and the folder it should land in on the storage side."""

    id: str
    path: Path
    target: str = ""

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def from_path(cls, path: str | Path, *, target: str = "") -> FilePayload:
        p = Path(path)
        return cls(id=str(p.resolve()), path=p, target=target)


def _safe_target(target: str) -> PurePosixPath:
    """Normalize a target folder; reject absolute paths and parent escapes."""
    rel = PurePosixPath(target.replace("\\", "/").strip("/"))
    if rel.is_absolute() or ".." in rel.parts:
        raise StorageError(f"Invalid target folder: {target!r}")
    return rel


def stored_name(payload: FilePayload) -> str:
    """
    File name used inside the target folder.

    Prefixed with a digest of the payload id, so two sources that share a
    file name never overwrite each other while a retried payload keeps its name.
    """
    digest = hashlib.sha256(payload.id.encode("utf-8")).hexdigest()[:_ID_DIGEST_LEN]
    return f"{digest}_{payload.name}"


class LocalDirectoryStorage:
    """
    StorageClient that copies files into a local directory tree.

    Bytes are copied chunk by chunk in a worker thread so the event loop keeps
    serving other uploads; each chunk reports a TRANSFER percentage.
    Every attempt writes its own temp file next to the destination and moves it
    into place at the end. The returned asset id is the stored file's path
    relative to root.
    """

    def __init__(self, root: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.root = Path(root)
        self.chunk_size = chunk_size

    def resolve(self, asset_id: str) -> Path:
        return self.root / _safe_target(asset_id)

    async def upload(self, payload: FilePayload, on_progress: ProgressCallback) -> str:
        src = Path(payload.path)
        if not src.is_file():
            raise StorageError(f"Source file not found: {src}")

        rel = _safe_target(payload.target) / stored_name(payload)
        dest = self.root / rel

        on_progress(0, UploadPhase.PREPARE)

        part: Path | None = None
        copied = 0
        try:
            await asyncio.to_thread(dest.parent.mkdir, parents=True, exist_ok=True)
            fd, tmp = await asyncio.to_thread(
                tempfile.mkstemp, suffix=".part", prefix=f".{dest.name}.", dir=dest.parent
            )
            part = Path(tmp)
            total = src.stat().st_size
            with os.fdopen(fd, "wb") as fout, src.open("rb") as fin:
                while True:
                    chunk = await asyncio.to_thread(fin.read, self.chunk_size)
                    if not chunk:
                        break
                    await asyncio.to_thread(fout.write, chunk)
                    copied += len(chunk)
                    # Hold 100 back for FINALIZE.
                    pct = min(99, copied * 100 // total) if total else 99
                    on_progress(pct, UploadPhase.TRANSFER)
            await asyncio.to_thread(os.replace, part, dest)
        except OSError as exc:
            raise StorageError(f"Failed to store {src.name}: {exc}") from exc
        finally:
            if part is not None:
                part.unlink(missing_ok=True)

        on_progress(100, UploadPhase.FINALIZE)
        asset_id = rel.as_posix()
        logger.debug("Stored %s (%d bytes) as %s", src, copied, asset_id)
        return asset_id
