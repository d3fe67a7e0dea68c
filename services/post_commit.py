"""
Post-commit side effects.

Work that must happen after a committed checkout but must never block it or
roll it back (sales-history append, market refresh requests) goes through a
TaskQueue:

- enqueue() returns immediately; the caller never awaits the task.
- Every task runs inside run_safely(): exceptions are logged and swallowed.

Implementations:
- ThreadPoolTaskQueue: a process-local worker pool (scripts, workers)
- BackgroundTasksQueue: FastAPI BackgroundTasks, runs after the response is sent
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Protocol

from fastapi import BackgroundTasks

from config import get_settings
from domain.time import utc_now
from repositories.refresh_repository import upsert_refresh_request

logger = logging.getLogger(__name__)


class TaskQueue(Protocol):
    def enqueue(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...


def run_safely(task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Run an advisory task; failures are logged, never raised."""

    name = getattr(task, "__name__", repr(task))
    try:
        task(*args, **kwargs)
    except Exception:
        logger.warning("Post-commit task %s failed", name, exc_info=True)


class ThreadPoolTaskQueue:
    def __init__(self, max_workers: Optional[int] = None) -> None:
        workers = max_workers or get_settings().post_commit_workers
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="post-commit")

    def enqueue(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._executor.submit(run_safely, task, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class BackgroundTasksQueue:
    """Adapts a request's BackgroundTasks to the TaskQueue protocol."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def enqueue(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(run_safely, task, *args, **kwargs)


def request_market_refresh(asset_id: str, delay_seconds: float = 0.0, reason: str = "purchase") -> None:
    """Delayed job body: wait, then file a refresh request for the asset."""

    if delay_seconds > 0:
        time.sleep(delay_seconds)
    upsert_refresh_request(asset_id, utc_now(), reason)
    logger.info("Market refresh requested for asset %s (%s)", asset_id, reason)


class RefreshScheduler:
    """Schedules delayed, fire-and-forget market refreshes after purchases."""

    def __init__(self, queue: TaskQueue, delay_seconds: Optional[float] = None) -> None:
        self._queue = queue
        self._delay_seconds = (
            get_settings().market_refresh_delay_seconds if delay_seconds is None else delay_seconds
        )

    def schedule(self, asset_id: str, delay_seconds: Optional[float] = None, reason: str = "purchase") -> None:
        delay = self._delay_seconds if delay_seconds is None else delay_seconds
        self._queue.enqueue(request_market_refresh, asset_id, delay, reason)


__all__ = [
    "TaskQueue",
    "run_safely",
    "ThreadPoolTaskQueue",
    "BackgroundTasksQueue",
    "request_market_refresh",
    "RefreshScheduler",
]
