# src/media_uploader/uploads/progress.py

from __future__ import annotations

"""
Progress aggregation.

Keeps the listener registry and derives GlobalStatus from a task collection.
The scheduler calls notify() after every task mutation.
"""

import logging
from collections import Counter
from collections.abc import Iterable

from ..core.ports import TaskListener
from .upload_models import GlobalStatus, UploadStatus, UploadTask

logger = logging.getLogger(__name__)


def compute_status(tasks: Iterable[UploadTask]) -> GlobalStatus:
    counts: Counter[UploadStatus] = Counter()
    total = 0
    for task in tasks:
        counts[task.status] += 1
        total += 1

    return GlobalStatus(
        total=total,
        pending=counts[UploadStatus.PENDING],
        uploading=counts[UploadStatus.UPLOADING],
        success=counts[UploadStatus.SUCCESS],
        error=counts[UploadStatus.ERROR],
    )


class ProgressAggregator:
    """Fan-out of task snapshots to registered listeners."""

    def __init__(self) -> None:
        self._listeners: list[TaskListener] = []

    def add_listener(self, listener: TaskListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TaskListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def notify(self, tasks: Iterable[UploadTask]) -> None:
        """
        Send every listener its own list of snapshots.

        A failing listener is logged and skipped; it must never break the
        upload that triggered the notification.
        """
        if not self._listeners:
            return

        items = list(tasks)
        for listener in list(self._listeners):
            try:
                listener([t.snapshot() for t in items])
            except Exception:
                logger.exception("Progress listener %r failed", listener)
