# src/media_uploader/uploads/upload_models.py

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any


class UploadStatus(StrEnum):
    """
    Upload task lifecycle status.

    Notes:
    - PENDING is also the state of a task waiting out its retry backoff.
    - SUCCESS and ERROR are terminal.
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStatus.SUCCESS, UploadStatus.ERROR)


def clamp_progress(value: Any) -> int:
    try:
        pct = int(value)
    except OverflowError:
        # Infinite float.
        return 100 if value > 0 else 0
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, pct))


@dataclass(slots=True)
class UploadTask:
    id: str
    payload: Any
    owner_id: str

    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    retry_count: int = 0
    error: str | None = None

    asset_id: str | None = None
    phase: str | None = None

    def snapshot(self) -> UploadTask:
        """Detached copy handed to listeners and callers."""
        return replace(self)


@dataclass(slots=True, frozen=True)
class GlobalStatus:
    """Aggregate counts over every tracked task. Always sums to total."""

    total: int = 0
    pending: int = 0
    uploading: int = 0
    success: int = 0
    error: int = 0

    @property
    def percent_complete(self) -> int:
        if self.total == 0:
            return 0
        return round(self.success / self.total * 100)

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "uploading": self.uploading,
            "success": self.success,
            "error": self.error,
        }
