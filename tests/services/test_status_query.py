"""Tests for loginrelay.services.status."""

from __future__ import annotations

from datetime import timedelta

import pytest

from loginrelay.core.errors import ChallengeNotFoundError
from loginrelay.core.types import ChallengeStatus
from loginrelay.models.challenge import Challenge
from loginrelay.services.status import StatusQuery


def test_lookup_pending_then_expired(store, clock):
    now = clock()
    store.put(Challenge("iC1", ChallengeStatus.PENDING, now, now + timedelta(seconds=60)))
    query = StatusQuery(store)
    assert query.lookup("iC1").status == ChallengeStatus.PENDING
    clock.advance(60)
    assert query.lookup("iC1").status == ChallengeStatus.EXPIRED


def test_lookup_unknown(store):
    with pytest.raises(ChallengeNotFoundError):
        StatusQuery(store).lookup("iMissing")


def test_lookup_after_sweep(store, clock):
    now = clock()
    store.put(Challenge("iC1", ChallengeStatus.PENDING, now, now + timedelta(seconds=60)))
    clock.advance(60 + 300)
    store.sweep()
    with pytest.raises(ChallengeNotFoundError):
        StatusQuery(store).lookup("iC1")
