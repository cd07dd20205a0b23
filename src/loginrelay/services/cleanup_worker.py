"""Periodic maintenance -- sweep stale challenges and rate-limit buckets.

Single daemon thread running a few tasks on independent intervals.
Each task tracks its own ``last_run`` timestamp, and an exception in
one task does not block the others.

Usage::

    worker = CleanupWorker(store=store, settings=settings, rate_limiter=limiter)
    worker.start()
    ...
    worker.stop()
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from loginrelay.app.rate_limiter import InMemoryRateLimiter
    from loginrelay.config.settings import RelaySettings
    from loginrelay.metrics.collector import MetricsCollector
    from loginrelay.store.base import ChallengeStore

log = logging.getLogger(__name__)

_DEFAULT_LOOP_INTERVAL = 15  # seconds between wakeups


class _CleanupTask:
    """Internal: a named task with its own interval and last-run tracking."""

    __slots__ = ("_last_run", "consecutive_failures", "func", "interval_seconds", "name")

    def __init__(
        self,
        name: str,
        interval_seconds: int,
        func: Callable[[], None],
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.func = func
        self._last_run: float | None = None
        self.consecutive_failures: int = 0

    def is_due(self, now: float) -> bool:
        if self._last_run is None:
            return True
        return (now - self._last_run) >= self.interval_seconds

    def run(self, now: float) -> None:
        self._last_run = now
        self.func()


class CleanupWorker:
    """Daemon thread that runs maintenance tasks on independent intervals."""

    def __init__(
        self,
        store: ChallengeStore | None = None,
        settings: RelaySettings | None = None,
        rate_limiter: InMemoryRateLimiter | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._tasks: list[_CleanupTask] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._metrics = metrics
        self._loop_interval = (
            settings.challenges.cleanup_loop_interval_seconds
            if settings is not None
            else _DEFAULT_LOOP_INTERVAL
        )

        # Challenge sweep
        if store is not None:
            gc_interval = settings.challenges.gc_interval_seconds if settings is not None else 60
            self._tasks.append(
                _CleanupTask(
                    name="challenge_sweep",
                    interval_seconds=gc_interval,
                    func=lambda: self._challenge_sweep(store),
                )
            )

        # Rate limit GC
        if rate_limiter is not None:
            gc_interval = 300  # noqa: PLR2004
            if settings is not None:
                gc_interval = settings.security.rate_limits.gc_interval_seconds
            self._tasks.append(
                _CleanupTask(
                    name="rate_limit_gc",
                    interval_seconds=gc_interval,
                    func=lambda: self._rate_limit_gc(rate_limiter),
                )
            )

    @property
    def task_names(self) -> list[str]:
        return [t.name for t in self._tasks]

    @property
    def started(self) -> bool:
        return self._thread is not None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background worker thread."""
        if not self._tasks:
            return
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="cleanup-worker",
            daemon=True,
        )
        self._thread.start()
        log.info("Cleanup worker started (tasks: %s)", self.task_names)

    def stop(self) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._loop_interval + 5)
            log.info("Cleanup worker stopped")

    def run_due(self, now: float | None = None) -> list[str]:
        """Run every task that is due and return their names."""
        now = time.monotonic() if now is None else now
        ran = []
        for task in self._tasks:
            if self._stop_event.is_set():
                break
            if task.is_due(now):
                self._execute_task(task, now)
                ran.append(task.name)
        return ran

    def _run(self) -> None:
        """Run main loop -- wake periodically, check which tasks are due."""
        while not self._stop_event.is_set():
            self.run_due()
            self._stop_event.wait(timeout=self._loop_interval)

    def _execute_task(self, task: _CleanupTask, now: float) -> None:
        """Execute a single task with error tracking and metrics."""
        try:
            task.run(now)
            task.consecutive_failures = 0
            if self._metrics:
                self._metrics.increment(
                    "loginrelay_cleanup_runs_total",
                    labels={"task": task.name},
                )
        except Exception:  # noqa: BLE001
            task.consecutive_failures += 1
            log.exception(
                "Cleanup task '%s' failed (consecutive: %d)",
                task.name,
                task.consecutive_failures,
            )
            if self._metrics:
                self._metrics.increment(
                    "loginrelay_cleanup_errors_total",
                    labels={"task": task.name},
                )

    # -- Task implementations --------------------------------------------------

    def _challenge_sweep(self, store: ChallengeStore) -> None:
        """Drop challenges past expiry plus the grace period."""
        removed = store.sweep()
        if removed:
            log.debug("Challenge sweep: removed %d stale challenges", removed)
            if self._metrics:
                self._metrics.increment("loginrelay_challenges_swept_total", amount=removed)
        if self._metrics:
            self._metrics.set_gauge("loginrelay_challenges_stored", len(store))

    @staticmethod
    def _rate_limit_gc(limiter: InMemoryRateLimiter) -> None:
        """Remove expired rate-limit buckets."""
        deleted = limiter.gc()
        if deleted:
            log.debug("Rate limit GC: deleted %d expired buckets", deleted)
