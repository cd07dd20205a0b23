"""In-memory challenge store.

A dict guarded by one :class:`threading.Lock`.  Critical sections are
pure dict operations; records are immutable dataclasses, so callers
receive values they can hold without further locking.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from loginrelay.core.errors import DuplicateIdError
from loginrelay.core.state import CHALLENGE_TRANSITIONS, assert_transition, log_transition
from loginrelay.core.types import ChallengeStatus, TransitionOutcome
from loginrelay.store.base import ChallengeStore, TransitionResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from loginrelay.config.settings import ChallengeSettings
    from loginrelay.models.challenge import Challenge

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryChallengeStore(ChallengeStore):
    """Process-local challenge store.

    Parameters
    ----------
    grace_seconds:
        How long a record survives past ``expires_at`` before
        :meth:`sweep` removes it.
    clock:
        Returns the current UTC time.  Injected by tests.

    """

    def __init__(
        self,
        grace_seconds: int = 300,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._records: dict[str, Challenge] = {}
        self._lock = threading.Lock()
        self._grace = timedelta(seconds=grace_seconds)
        self._clock = clock

    def put(self, challenge: Challenge) -> None:
        with self._lock:
            if challenge.id in self._records:
                log.error("Duplicate challenge id generated: %s", challenge.id)
                raise DuplicateIdError
            self._records[challenge.id] = challenge
        log.debug("Stored challenge %s (expires %s)", challenge.id, challenge.expires_at)

    def get(self, challenge_id: str) -> Challenge | None:
        with self._lock:
            record = self._records.get(challenge_id)
        if record is None:
            return None
        return record.effective(self._clock())

    def transition(
        self,
        challenge_id: str,
        new_status: ChallengeStatus,
        signing_id: str | None = None,
    ) -> TransitionResult:
        now = self._clock()
        with self._lock:
            record = self._records.get(challenge_id)
            if record is None:
                return TransitionResult(TransitionOutcome.NOT_FOUND, None)

            if record.status == ChallengeStatus.EXPIRED:
                return TransitionResult(TransitionOutcome.EXPIRED, record)
            if record.status != ChallengeStatus.PENDING:
                return TransitionResult(TransitionOutcome.ALREADY_RESOLVED, record)

            if record.is_past_expiry(now):
                expired = replace(record, status=ChallengeStatus.EXPIRED)
                self._records[challenge_id] = expired
                log_transition(
                    "challenge",
                    challenge_id,
                    record.status,
                    expired.status,
                    reason="ttl elapsed",
                )
                return TransitionResult(TransitionOutcome.EXPIRED, expired)

            assert_transition(record.status, new_status, CHALLENGE_TRANSITIONS)
            updated = replace(
                record,
                status=new_status,
                signing_id=signing_id if new_status == ChallengeStatus.VERIFIED else None,
            )
            self._records[challenge_id] = updated

        log_transition("challenge", challenge_id, record.status, new_status)
        return TransitionResult(TransitionOutcome.APPLIED, updated)

    def record_failure(self, challenge_id: str, max_failures: int) -> Challenge | None:
        now = self._clock()
        with self._lock:
            record = self._records.get(challenge_id)
            if record is None or record.status != ChallengeStatus.PENDING:
                return None
            if record.is_past_expiry(now):
                return None

            attempts = record.failed_attempts + 1
            if max_failures > 0 and attempts >= max_failures:
                assert_transition(record.status, ChallengeStatus.FAILED, CHALLENGE_TRANSITIONS)
                updated = replace(
                    record,
                    failed_attempts=attempts,
                    status=ChallengeStatus.FAILED,
                )
            else:
                updated = replace(record, failed_attempts=attempts)
            self._records[challenge_id] = updated

        if updated.status == ChallengeStatus.FAILED:
            log_transition(
                "challenge",
                challenge_id,
                ChallengeStatus.PENDING,
                ChallengeStatus.FAILED,
                reason=f"{attempts} failed verification attempts",
            )
        return updated

    def mark_reported(self, challenge_id: str) -> bool:
        with self._lock:
            record = self._records.get(challenge_id)
            if record is None or record.reported:
                return False
            self._records[challenge_id] = replace(record, reported=True)
        return True

    def sweep(self) -> int:
        cutoff = self._clock() - self._grace
        with self._lock:
            stale = [cid for cid, rec in self._records.items() if rec.expires_at <= cutoff]
            for cid in stale:
                del self._records[cid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def create_store(
    settings: ChallengeSettings,
    clock: Callable[[], datetime] = _utcnow,
) -> ChallengeStore:
    """Factory: build the challenge store for *settings*."""
    log.info("Using in-memory challenge store")
    return InMemoryChallengeStore(grace_seconds=settings.gc_grace_seconds, clock=clock)
