# src/media_uploader/uploads/retry_policy.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from .upload_models import UploadTask

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0


@dataclass(slots=True, frozen=True)
class RetryDecision:
    retry: bool
    delay_seconds: float = 0.0
    retry_count: int = 0


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    Linear backoff retry policy.

    A failed task is retried while retry_count < max_attempts; the n-th retry
    waits base_delay_seconds * n. The policy never mutates the task, the
    scheduler applies the returned decision.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.base_delay_seconds < 0:
            raise ValueError(f"base_delay_seconds must be >= 0, got {self.base_delay_seconds}")

    def backoff_delay(self, retry_count: int) -> float:
        return self.base_delay_seconds * max(0, retry_count)

    def decide(self, task: UploadTask) -> RetryDecision:
        if task.retry_count < self.max_attempts:
            next_count = task.retry_count + 1
            delay = self.backoff_delay(next_count)
            logger.debug(
                "Retry %d/%d for task %s in %.2fs", next_count, self.max_attempts, task.id, delay
            )
            return RetryDecision(retry=True, delay_seconds=delay, retry_count=next_count)

        return RetryDecision(retry=False, retry_count=task.retry_count)
