# src/media_uploader/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler depends on Protocols instead of concrete implementations.
This keeps storage backends swappable and makes testing easier.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..uploads.upload_models import UploadTask

ProgressCallback = Callable[[int, str], None]
# (percent, phase) as reported by a storage client during one attempt.

TaskListener = Callable[[list["UploadTask"]], None]


class Payload(Protocol):
    """Anything with a stable id can be scheduled; the rest is opaque to the core."""

    @property
    def id(self) -> str: ...


class StorageClient(Protocol):
    """
    Backend-side port: how the scheduler stores one payload.

    Contract:
    - call on_progress zero or more times with non-decreasing percentages,
    - then settle exactly once: return an asset id, or raise.
    Any Exception raised here is treated as a retryable failure.
    """

    def upload(self, payload: Any, on_progress: ProgressCallback) -> Awaitable[str]: ...
