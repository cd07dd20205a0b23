"""Unit tests for loginrelay.store.memory -- the in-memory challenge store."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from loginrelay.config.settings import build_settings
from loginrelay.core.errors import DuplicateIdError
from loginrelay.core.types import ChallengeStatus, TransitionOutcome
from loginrelay.models.challenge import Challenge
from loginrelay.store import InMemoryChallengeStore, create_store


def _pending(clock, cid="iChallenge", ttl=300) -> Challenge:
    return Challenge(
        id=cid,
        status=ChallengeStatus.PENDING,
        created_at=clock(),
        expires_at=clock() + timedelta(seconds=ttl),
    )


class TestPutGet:
    def test_put_then_get(self, store, clock):
        store.put(_pending(clock))
        got = store.get("iChallenge")
        assert got is not None
        assert got.status == ChallengeStatus.PENDING
        assert len(store) == 1

    def test_get_unknown(self, store):
        assert store.get("iMissing") is None

    def test_duplicate_id_rejected(self, store, clock):
        store.put(_pending(clock))
        with pytest.raises(DuplicateIdError):
            store.put(_pending(clock))
        assert len(store) == 1

    def test_get_coerces_expired_without_mutation(self, store, clock):
        store.put(_pending(clock))
        clock.advance(301)
        assert store.get("iChallenge").status == ChallengeStatus.EXPIRED
        # Storage still holds pending until a transition or sweep
        assert store._records["iChallenge"].status == ChallengeStatus.PENDING


class TestTransition:
    def test_applied(self, store, clock):
        store.put(_pending(clock))
        result = store.transition("iChallenge", ChallengeStatus.VERIFIED, "iSigner")
        assert result.outcome == TransitionOutcome.APPLIED
        assert result.applied
        assert result.challenge.status == ChallengeStatus.VERIFIED
        assert result.challenge.signing_id == "iSigner"

    def test_not_found(self, store):
        result = store.transition("iMissing", ChallengeStatus.VERIFIED, "iSigner")
        assert result.outcome == TransitionOutcome.NOT_FOUND
        assert result.challenge is None

    def test_already_resolved(self, store, clock):
        store.put(_pending(clock))
        store.transition("iChallenge", ChallengeStatus.VERIFIED, "iSigner")
        again = store.transition("iChallenge", ChallengeStatus.VERIFIED, "iOther")
        assert again.outcome == TransitionOutcome.ALREADY_RESOLVED
        assert again.challenge.signing_id == "iSigner"

    def test_expired_is_persisted(self, store, clock):
        store.put(_pending(clock))
        clock.advance(300)
        result = store.transition("iChallenge", ChallengeStatus.VERIFIED, "iSigner")
        assert result.outcome == TransitionOutcome.EXPIRED
        assert store._records["iChallenge"].status == ChallengeStatus.EXPIRED
        # A second attempt sees the stored expiry directly
        assert (
            store.transition("iChallenge", ChallengeStatus.VERIFIED, "iSigner").outcome
            == TransitionOutcome.EXPIRED
        )

    def test_signing_id_only_kept_for_verified(self, store, clock):
        store.put(_pending(clock))
        result = store.transition("iChallenge", ChallengeStatus.FAILED, "iSigner")
        assert result.challenge.signing_id is None

    def test_concurrent_verifications_single_winner(self, store, clock):
        store.put(_pending(clock))
        outcomes = []
        barrier = threading.Barrier(16)

        def _verify(n):
            barrier.wait()
            result = store.transition("iChallenge", ChallengeStatus.VERIFIED, f"iSigner{n}")
            outcomes.append(result.outcome)

        threads = [threading.Thread(target=_verify, args=(n,)) for n in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count(TransitionOutcome.APPLIED) == 1
        assert outcomes.count(TransitionOutcome.ALREADY_RESOLVED) == 15


class TestRecordFailure:
    def test_counts_without_failing_below_cap(self, store, clock):
        store.put(_pending(clock))
        updated = store.record_failure("iChallenge", 3)
        assert updated.failed_attempts == 1
        assert updated.status == ChallengeStatus.PENDING

    def test_fails_at_cap(self, store, clock):
        store.put(_pending(clock))
        store.record_failure("iChallenge", 2)
        updated = store.record_failure("iChallenge", 2)
        assert updated.status == ChallengeStatus.FAILED
        assert store.get("iChallenge").status == ChallengeStatus.FAILED

    def test_zero_cap_never_fails(self, store, clock):
        store.put(_pending(clock))
        for _ in range(10):
            updated = store.record_failure("iChallenge", 0)
        assert updated.status == ChallengeStatus.PENDING
        assert updated.failed_attempts == 10

    def test_ignored_when_not_pending(self, store, clock):
        store.put(_pending(clock))
        store.transition("iChallenge", ChallengeStatus.VERIFIED, "iSigner")
        assert store.record_failure("iChallenge", 1) is None
        assert store.get("iChallenge").status == ChallengeStatus.VERIFIED

    def test_ignored_when_expired_or_missing(self, store, clock):
        store.put(_pending(clock))
        clock.advance(600)
        assert store.record_failure("iChallenge", 1) is None
        assert store.record_failure("iMissing", 1) is None


class TestMarkReported:
    def test_first_mark_wins(self, store, clock):
        store.put(_pending(clock))
        assert store.mark_reported("iChallenge") is True
        assert store.mark_reported("iChallenge") is False
        assert store.get("iChallenge").reported is True

    def test_unknown(self, store):
        assert store.mark_reported("iMissing") is False


class TestSweep:
    def test_removes_only_past_grace(self, store, clock):
        store.put(_pending(clock, "iOld", ttl=10))
        store.put(_pending(clock, "iNew", ttl=1000))
        clock.advance(10 + 299)
        assert store.sweep() == 0
        clock.advance(1)
        assert store.sweep() == 1
        assert store.get("iOld") is None
        assert store.get("iNew") is not None

    def test_sweeps_resolved_records_too(self, store, clock):
        store.put(_pending(clock, ttl=10))
        store.transition("iChallenge", ChallengeStatus.VERIFIED, "iSigner")
        clock.advance(400)
        assert store.sweep() == 1
        assert len(store) == 0


class TestCreateStore:
    def test_uses_grace_from_settings(self, clock):
        settings = build_settings({"challenges": {"gc_grace_seconds": 5}})
        store = create_store(settings.challenges, clock=clock)
        assert isinstance(store, InMemoryChallengeStore)
        store.put(_pending(clock, ttl=1))
        clock.advance(6)
        assert store.sweep() == 1
