# src/media_uploader/uploads/upload_scheduler.py

from __future__ import annotations

"""
Upload scheduler.

A bounded worker pool that:
- admits pending tasks in submission order,
- uploads them through an injected storage port,
- hands failed attempts to the retry policy,
- requeues retried tasks after their backoff without holding a slot,
- stays open for tasks added mid-run until nothing is left outstanding.

Where the bytes go (bucket, table, directory) belongs to the storage client, not the scheduler.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.ports import Payload, StorageClient, TaskListener
from ..errors import SchedulerBusyError, SchedulerError
from .progress import ProgressAggregator, compute_status
from .retry_policy import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS, RetryPolicy
from .upload_models import GlobalStatus, UploadStatus, UploadTask, clamp_progress

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3


@dataclass(slots=True, frozen=True)
class SchedulerConfig:
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay_seconds=self.base_delay_seconds,
        )


@dataclass(slots=True)
class _Run:
    """Bookkeeping for one start() call."""

    queue: asyncio.Queue[UploadTask]
    tasks: list[UploadTask] = field(default_factory=list)
    outstanding: int = 0
    # Set whenever outstanding drops to zero.
    idle: asyncio.Event = field(default_factory=asyncio.Event)


def payload_id(payload: Any) -> str:
    """Read the task id off a payload (attribute `id`, or key "id" for mappings)."""
    if isinstance(payload, Mapping):
        raw = payload.get("id")
    else:
        raw = getattr(payload, "id", None)
    if raw is None or str(raw) == "":
        raise ValueError(f"payload has no id: {payload!r}")
    return str(raw)


class UploadScheduler:
    """
    Owns the upload task collection and drives every task to a terminal state.

    Usage:

        scheduler = UploadScheduler(storage, config=SchedulerConfig(max_concurrent=4))
        scheduler.on_progress(render)
        scheduler.add_tasks("album-1", payloads)
        uploaded_ids = await scheduler.start()
    """

    def __init__(
            self,
            storage: StorageClient,
            *,
            config: SchedulerConfig | None = None,
            retry_policy: RetryPolicy | None = None,
            aggregator: ProgressAggregator | None = None,
    ) -> None:
        self._storage = storage
        self._config = config or SchedulerConfig()
        self._retry = retry_policy or self._config.retry_policy()
        self._progress = aggregator or ProgressAggregator()

        self._tasks: dict[str, UploadTask] = {}
        # id() of each UploadTask object with an attempt in flight.
        self._active: set[int] = set()
        self._run: _Run | None = None

    # ---- Public API ----

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._run is not None

    @property
    def active_count(self) -> int:
        """Attempts currently in flight against the storage client (reset by clear())."""
        return len(self._active)

    def add_tasks(self, owner_id: str, payloads: Iterable[Payload]) -> None:
        """
        Queue one pending task per payload.

        Re-adding a known id replaces that task's bookkeeping. When a run is
        in progress the new tasks join it.
        """
        items = [(payload_id(p), p) for p in payloads]
        if not items:
            return

        logger.info("Queued %d upload(s) for owner %s", len(items), owner_id)

        for task_id, payload in items:
            task = UploadTask(id=task_id, payload=payload, owner_id=owner_id)
            self._tasks[task_id] = task
            run = self._run
            if run is not None:
                self._enqueue(run, task)

        self._notify()

    def on_progress(self, listener: TaskListener) -> None:
        self._progress.add_listener(listener)

    def remove_listener(self, listener: TaskListener) -> None:
        self._progress.remove_listener(listener)

    def get_status(self) -> GlobalStatus:
        return compute_status(self._tasks.values())

    def tasks(self) -> list[UploadTask]:
        return [t.snapshot() for t in self._tasks.values()]

    def get_task(self, task_id: str) -> UploadTask | None:
        task = self._tasks.get(task_id)
        return task.snapshot() if task is not None else None

    def clear(self) -> None:
        """
        Forget every task. Uploads already in flight keep running against the
        storage client but their outcome is discarded and they are not retried.
        """
        dropped = len(self._tasks)
        self._tasks.clear()
        self._active.clear()
        logger.info("Cleared %d upload task(s)", dropped)
        self._notify()

    async def start(self) -> list[str]:
        """
        Upload every pending task and return the ids that reached SUCCESS,
        in submission order.

        Individual failures never raise here; inspect get_status() for them.
        Raises SchedulerError only when the run itself breaks.
        """
        if self._run is not None:
            raise SchedulerBusyError("An upload run is already in progress")

        pending = [t for t in self._tasks.values() if t.status == UploadStatus.PENDING]
        if not pending:
            logger.info("No pending uploads")
            return []

        workers = self._config.max_concurrent
        logger.info("Starting %d upload(s) (max concurrent: %d)", len(pending), workers)

        run = _Run(queue=asyncio.Queue())
        self._run = run
        for task in pending:
            self._enqueue(run, task)

        try:
            async with asyncio.TaskGroup() as tg:
                pool = [tg.create_task(self._worker(run, tg, n)) for n in range(workers)]
                # A listener may add tasks right after the last one settles.
                while run.outstanding > 0:
                    await run.idle.wait()
                # Tasks added from here on wait for the next start().
                self._run = None
                for worker in pool:
                    worker.cancel()
        except ExceptionGroup as eg:
            logger.error("Upload run aborted: %s", eg.exceptions[0])
            raise SchedulerError("Upload run aborted") from eg
        finally:
            if self._run is run:
                self._run = None

        done = [
            t.id for t in run.tasks if self._is_tracked(t) and t.status == UploadStatus.SUCCESS
        ]
        failed = sum(
            1 for t in run.tasks if self._is_tracked(t) and t.status == UploadStatus.ERROR
        )
        logger.info("Upload run finished: %d succeeded, %d failed", len(done), failed)
        return done

    # ---- Internals ----

    def _is_tracked(self, task: UploadTask) -> bool:
        return self._tasks.get(task.id) is task

    def _notify(self) -> None:
        self._progress.notify(self._tasks.values())

    def _enqueue(self, run: _Run, task: UploadTask) -> None:
        run.outstanding += 1
        run.idle.clear()
        run.tasks.append(task)
        run.queue.put_nowait(task)

    def _settle(self, run: _Run) -> None:
        run.outstanding -= 1
        if run.outstanding <= 0:
            run.idle.set()

    async def _worker(self, run: _Run, tg: asyncio.TaskGroup, worker_no: int) -> None:
        logger.debug("Upload worker %d started", worker_no)
        while True:
            task = await run.queue.get()

            # Dropped by clear() or replaced by add_tasks() while queued.
            if not self._is_tracked(task) or task.status != UploadStatus.PENDING:
                self._settle(run)
                continue

            await self._attempt(run, tg, task)

    async def _attempt(self, run: _Run, tg: asyncio.TaskGroup, task: UploadTask) -> None:
        task.status = UploadStatus.UPLOADING
        task.progress = 0
        task.phase = None
        self._active.add(id(task))
        self._notify()

        def on_progress(percent: int, phase: str) -> None:
            if task.status != UploadStatus.UPLOADING:
                return
            task.progress = clamp_progress(percent)
            task.phase = phase
            if self._is_tracked(task):
                self._notify()

        logger.debug("Uploading %s (attempt %d)", task.id, task.retry_count + 1)
        try:
            asset_id = await self._storage.upload(task.payload, on_progress)
        except Exception as exc:
            self._active.discard(id(task))
            self._handle_failure(run, tg, task, exc)
            return

        self._active.discard(id(task))
        task.status = UploadStatus.SUCCESS
        task.progress = 100
        task.asset_id = str(asset_id)
        task.error = None
        self._settle(run)

        if self._is_tracked(task):
            logger.info("Uploaded %s -> %s", task.id, task.asset_id)
            self._notify()

    def _handle_failure(
            self,
            run: _Run,
            tg: asyncio.TaskGroup,
            task: UploadTask,
            exc: Exception,
    ) -> None:
        if not self._is_tracked(task):
            logger.debug("Dropped task %s failed after clear: %s", task.id, exc)
            task.status = UploadStatus.ERROR
            self._settle(run)
            return

        message = str(exc) or exc.__class__.__name__
        decision = self._retry.decide(task)

        if decision.retry:
            task.retry_count = decision.retry_count
            task.status = UploadStatus.PENDING
            task.progress = 0
            task.phase = None
            logger.warning(
                "Upload failed for %s: %s (retry %d/%d in %.2fs)",
                task.id,
                message,
                task.retry_count,
                self._retry.max_attempts,
                decision.delay_seconds,
            )
            self._notify()
            tg.create_task(self._requeue_later(run, task, decision.delay_seconds))
            return

        task.status = UploadStatus.ERROR
        task.progress = 0
        task.phase = None
        task.error = message
        logger.error(
            "Upload failed for %s after %d retries: %s", task.id, task.retry_count, message
        )
        self._settle(run)
        self._notify()

    async def _requeue_later(self, run: _Run, task: UploadTask, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        run.queue.put_nowait(task)
