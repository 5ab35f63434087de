# src/media_uploader/errors.py

"""Exception types raised by the uploader library."""

from __future__ import annotations


class UploaderError(Exception):
    """Base class for all media_uploader errors."""


class SchedulerError(UploaderError):
    """Scheduler-level fault not attributable to a single task; fails start()."""


class SchedulerBusyError(SchedulerError):
    """start() was called while a previous run is still in progress."""


class StorageError(UploaderError):
    """A storage client could not store a payload. Retryable by the scheduler."""
