# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from media_uploader.core.ports import ProgressCallback
from media_uploader.errors import StorageError
from media_uploader.uploads.upload_models import UploadStatus, UploadTask


@dataclass(slots=True, frozen=True)
class FakePayload:
    id: str
    name: str = "file.jpg"


def make_payloads(*ids: str) -> list[FakePayload]:
    return [FakePayload(id=i, name=f"{i}.jpg") for i in ids]


class ScriptedStorage:
    """
    Fake StorageClient used by scheduler tests.

    - script maps payload id -> list of outcomes ("ok" / "fail"), consumed per attempt
      (an exhausted or missing script means "ok")
    - always_fail ids fail on every attempt
    - records call order and the peak number of overlapping uploads
    """

    def __init__(
        self,
        script: dict[str, list[str]] | None = None,
        *,
        always_fail: Iterable[str] = (),
        delay: float = 0.01,
        progress: Iterable[int] = (25, 50, 75),
    ) -> None:
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.always_fail = set(always_fail)
        self.delay = delay
        self.progress = list(progress)
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak = 0

    async def upload(self, payload: FakePayload, on_progress: ProgressCallback) -> str:
        self.calls.append(payload.id)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            outcomes = self.script.get(payload.id) or []
            outcome = outcomes.pop(0) if outcomes else "ok"
            for pct in self.progress:
                on_progress(pct, "transfer")
            await asyncio.sleep(self.delay)
            if payload.id in self.always_fail or outcome == "fail":
                raise StorageError(f"boom {payload.id}")
            return f"asset-{payload.id}"
        finally:
            self.in_flight -= 1


class GatedStorage:
    """
    StorageClient whose uploads block until released.

    release() opens every gate, including those of later calls;
    release(n) lets only the n-th call (0-based) finish.
    """

    def __init__(self) -> None:
        self.gates: list[asyncio.Event] = []
        self.opened = False
        self.started = asyncio.Event()
        self.calls: list[str] = []

    def release(self, index: int | None = None) -> None:
        if index is not None:
            self.gates[index].set()
            return
        self.opened = True
        for gate in self.gates:
            gate.set()

    async def wait_for_calls(self, count: int) -> None:
        while len(self.calls) < count:
            await asyncio.sleep(0)

    async def upload(self, payload: FakePayload, on_progress: ProgressCallback) -> str:
        gate = asyncio.Event()
        if self.opened:
            gate.set()
        self.gates.append(gate)
        self.calls.append(payload.id)
        self.started.set()
        await gate.wait()
        on_progress(100, "done")
        return f"asset-{payload.id}"


@dataclass(slots=True)
class RecordingListener:
    """Captures every snapshot list the scheduler publishes."""

    snapshots: list[list[UploadTask]] = field(default_factory=list)

    def __call__(self, tasks: list[UploadTask]) -> None:
        self.snapshots.append(tasks)

    def max_uploading(self) -> int:
        return max(
            (sum(1 for t in snap if t.status == UploadStatus.UPLOADING) for snap in self.snapshots),
            default=0,
        )

    def progress_values(self, task_id: str) -> list[int]:
        return [t.progress for snap in self.snapshots for t in snap if t.id == task_id]
