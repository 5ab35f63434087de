# src/media_uploader/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the scheduler from settings, queues the given
files and runs one upload batch into the local storage directory.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from ..cli.bootstrap import create_scheduler
from ..config import get_settings
from ..errors import UploaderError
from ..logging_setup import setup_logging
from ..storage.local_storage import FilePayload
from ..uploads.upload_models import UploadStatus, UploadTask

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-uploader",
        description="Upload files in parallel with retries into the configured storage directory.",
    )
    parser.add_argument("files", nargs="+", type=Path, help="Files to upload.")
    parser.add_argument("--owner", required=True, help="Owner id the uploads belong to.")
    parser.add_argument("--target", default="", help="Folder inside the storage directory.")
    parser.add_argument("--max-concurrent", type=int, default=None)
    parser.add_argument("--max-attempts", type=int, default=None)
    parser.add_argument("--base-delay", type=float, default=None, help="Backoff base, seconds.")
    parser.add_argument("--no-cache", action="store_true", help="Do not consult the upload cache.")
    return parser


def _status_logger():
    """Listener that logs each task only when its status changes."""
    seen: dict[str, UploadStatus] = {}

    def _on_progress(tasks: list[UploadTask]) -> None:
        for t in tasks:
            if seen.get(t.id) == t.status:
                continue
            seen[t.id] = t.status
            if t.status == UploadStatus.ERROR:
                logger.info("%s: %s (%s)", t.payload.name, t.status, t.error)
            elif t.retry_count and t.status == UploadStatus.PENDING:
                logger.info("%s: waiting for retry %d", t.payload.name, t.retry_count)
            else:
                logger.info("%s: %s", t.payload.name, t.status)

    return _on_progress


def _overrides(args: argparse.Namespace) -> dict:
    out: dict = {}
    if args.max_concurrent is not None:
        out["max_concurrent"] = args.max_concurrent
    if args.max_attempts is not None:
        out["max_attempts"] = args.max_attempts
    if args.base_delay is not None:
        out["base_delay_seconds"] = args.base_delay
    if args.no_cache:
        out["cache_enabled"] = False
    return out


async def run_upload(args: argparse.Namespace) -> int:
    settings = get_settings()
    scheduler = create_scheduler(settings=settings, **_overrides(args))
    scheduler.on_progress(_status_logger())

    payloads = [FilePayload.from_path(p, target=args.target) for p in args.files]
    scheduler.add_tasks(args.owner, payloads)

    uploaded = await scheduler.start()
    status = scheduler.get_status()

    print(
        f"Uploaded {len(uploaded)}/{status.total} "
        f"({status.percent_complete}%), errors: {status.error}"
    )
    for task in scheduler.tasks():
        if task.status == UploadStatus.SUCCESS:
            print(f"  {task.payload.path} -> {task.asset_id}")
        elif task.status == UploadStatus.ERROR:
            print(f"  {task.payload.path} FAILED: {task.error}")

    return 1 if status.error else 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        return asyncio.run(run_upload(args))
    except (UploaderError, ValueError) as exc:
        logger.error("Upload aborted: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
