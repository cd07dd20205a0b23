"""Outcome reporter: deliver verified logins to the platform.

A queue of report jobs drained by one daemon thread, decoupled from
the wallet's request/response cycle.  Delivery is attempted until the
platform acknowledges it or ``platform.max_attempts`` is reached, with
exponential backoff between attempts.  The challenge's ``reported``
flag is set only after an acknowledgement, and a job whose challenge
is already reported is skipped, so the platform hears about each
challenge at most once per successful delivery.

Exhausted or non-retryable jobs are logged, counted and appended to
the optional dead-letter file.  They never touch the challenge's
verified status.

Usage::

    reporter = OutcomeReporter(store, PlatformClient(settings.platform), settings.platform)
    reporter.start()
    reporter.submit(challenge_id, signing_id)   # returns immediately
    ...
    reporter.stop()
"""

from __future__ import annotations

import heapq
import itertools
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loginrelay.core.errors import ReportingFailure
from loginrelay.core.types import ReportOutcome
from loginrelay.logging import security_events

if TYPE_CHECKING:
    from collections.abc import Callable

    from loginrelay.config.settings import PlatformSettings
    from loginrelay.metrics.collector import MetricsCollector
    from loginrelay.services.platform import PlatformClient
    from loginrelay.store.base import ChallengeStore

log = logging.getLogger(__name__)

_DEFAULT_POLL_INTERVAL = 1.0


@dataclass
class ReportJob:
    """Internal: one outcome awaiting delivery."""

    challenge_id: str
    signing_id: str
    attempts: int = 0
    last_error: str | None = None


class OutcomeReporter:
    """Queue-backed, retrying delivery of verified outcomes.

    Parameters
    ----------
    store:
        Challenge store holding the ``reported`` flags.
    client:
        Transport to the platform.
    settings:
        The ``platform`` section from :class:`RelaySettings`.
    metrics:
        Optional collector for ``loginrelay_reports_total``.
    clock:
        Monotonic clock; injected by tests.

    """

    def __init__(  # noqa: PLR0913
        self,
        store: ChallengeStore,
        client: PlatformClient,
        settings: PlatformSettings,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._store = store
        self._client = client
        self._settings = settings
        self._metrics = metrics
        self._clock = clock
        self._poll_interval = poll_interval

        self._heap: list[tuple[float, int, ReportJob]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -- public API ----------------------------------------------------------

    def submit(self, challenge_id: str, signing_id: str) -> None:
        """Queue a verified outcome for delivery.  Never blocks on I/O."""
        self._schedule(ReportJob(challenge_id, signing_id), delay=0.0)
        self._count("queued")

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._heap)

    @property
    def started(self) -> bool:
        """True once :meth:`start` has launched the delivery thread."""
        return self._thread is not None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_pending(self) -> int:
        """Deliver every job that is due now.  Returns the number processed."""
        due = self._take_due()
        for job in due:
            attempts_before = job.attempts
            try:
                self._deliver(job)
            except Exception as exc:  # noqa: BLE001
                log.exception("Unexpected error delivering report for challenge %s", job.challenge_id)
                if job.attempts == attempts_before:
                    job.attempts += 1
                self._fail(job, f"unexpected error: {exc!r}", retryable=True)
        return len(due)

    def backoff_delay(self, attempts: int) -> float:
        """Delay before retry number *attempts* (1-based)."""
        delay = self._settings.retry_base_seconds * (2 ** max(attempts - 1, 0))
        return min(delay, self._settings.retry_max_seconds)

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Start the background delivery thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="outcome-reporter",
            daemon=True,
        )
        self._thread.start()
        log.info("Outcome reporter started (target: %s)", self._client.url)

    def stop(self, timeout: float = 10.0) -> None:
        """Signal the worker to stop, deliver due jobs and wait for it."""
        self._stop_event.set()
        with self._cond:
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            remaining = self.pending_count
            if remaining:
                log.warning("Outcome reporter stopped with %d undelivered reports", remaining)
            else:
                log.info("Outcome reporter stopped")

    # -- internals -----------------------------------------------------------

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_pending()
            except Exception:  # noqa: BLE001
                log.exception("Outcome reporter loop failed")
            self._wait_for_work()
        # Final drain of whatever is already due
        try:
            self.run_pending()
        except Exception:  # noqa: BLE001
            log.exception("Outcome reporter final drain failed")

    def _wait_for_work(self) -> None:
        with self._cond:
            if self._stop_event.is_set():
                return
            timeout = self._poll_interval
            if self._heap:
                timeout = max(0.0, min(timeout, self._heap[0][0] - self._clock()))
            self._cond.wait(timeout=timeout)

    def _schedule(self, job: ReportJob, delay: float) -> None:
        with self._cond:
            heapq.heappush(self._heap, (self._clock() + delay, next(self._seq), job))
            self._cond.notify()

    def _take_due(self) -> list[ReportJob]:
        now = self._clock()
        due: list[ReportJob] = []
        with self._cond:
            while self._heap and self._heap[0][0] <= now:
                due.append(heapq.heappop(self._heap)[2])
        return due

    def _deliver(self, job: ReportJob) -> ReportOutcome:
        current = self._store.get(job.challenge_id)
        if current is not None and current.reported:
            log.debug("Challenge %s already reported, skipping", job.challenge_id)
            self._count(ReportOutcome.SKIPPED)
            return ReportOutcome.SKIPPED

        job.attempts += 1
        try:
            self._client.notify_verified(job.challenge_id, job.signing_id)
        except ReportingFailure as exc:
            return self._fail(job, exc.detail, retryable=exc.retryable)

        self._store.mark_reported(job.challenge_id)
        security_events.report_delivered(job.challenge_id, job.signing_id, job.attempts)
        self._count(ReportOutcome.DELIVERED)
        return ReportOutcome.DELIVERED

    def _fail(self, job: ReportJob, detail: str, *, retryable: bool) -> ReportOutcome:
        """Reschedule *job* with backoff, or dead-letter it once exhausted."""
        job.last_error = detail
        if retryable and job.attempts < self._settings.max_attempts:
            delay = self.backoff_delay(job.attempts)
            log.warning(
                "Reporting challenge %s failed (attempt %d/%d), retrying in %.1fs: %s",
                job.challenge_id,
                job.attempts,
                self._settings.max_attempts,
                delay,
                detail,
            )
            self._schedule(job, delay)
            self._count(ReportOutcome.RETRY)
            return ReportOutcome.RETRY

        security_events.report_failed(job.challenge_id, job.signing_id, job.attempts, detail)
        self._count(ReportOutcome.DEAD)
        if self._settings.dead_letter_log:
            self._write_dead_letter(job)
        return ReportOutcome.DEAD

    def _write_dead_letter(self, job: ReportJob) -> None:
        """Append an undeliverable report to the dead-letter log file."""
        try:
            entry = json.dumps(
                {
                    "timestamp": time.time(),
                    "challengeId": job.challenge_id,
                    "signingId": job.signing_id,
                    "attempts": job.attempts,
                    "error": job.last_error,
                }
            )
            with open(self._settings.dead_letter_log, "a", encoding="utf-8") as f:  # type: ignore[arg-type]  # noqa: PTH123
                f.write(entry + "\n")
        except OSError:
            log.exception("Failed to write dead-letter log entry")

    def _count(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.increment(
                "loginrelay_reports_total",
                labels={"outcome": str(outcome)},
            )
