"""Tests for loginrelay.api.serializers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from loginrelay.api.serializers import (
    epoch_millis,
    iso_timestamp,
    serialize_issued,
    serialize_status,
)
from loginrelay.core.types import ChallengeStatus
from loginrelay.models.challenge import Challenge
from loginrelay.services.issuer import IssuedChallenge

_T0 = datetime(2026, 1, 1, 12, 0, 0, 250000, tzinfo=UTC)


def _challenge(**kwargs) -> Challenge:
    defaults = {
        "id": "iChallenge",
        "status": ChallengeStatus.PENDING,
        "created_at": _T0,
        "expires_at": _T0 + timedelta(seconds=300),
    }
    defaults.update(kwargs)
    return Challenge(**defaults)


class TestTimestamps:
    def test_iso_timestamp_utc(self):
        assert iso_timestamp(_T0) == "2026-01-01T12:00:00.250Z"

    def test_iso_timestamp_converts_offsets(self):
        local = _T0.astimezone(timezone(timedelta(hours=2)))
        assert iso_timestamp(local) == "2026-01-01T12:00:00.250Z"

    def test_epoch_millis(self):
        assert epoch_millis(_T0) == 1767268800250


class TestSerializeIssued:
    def test_fields(self):
        issued = IssuedChallenge(
            challenge=_challenge(),
            deeplink="verus://1/login-consent-request/abc",
            qr_data_url=None,
        )
        assert serialize_issued(issued) == {
            "challengeId": "iChallenge",
            "deeplink": "verus://1/login-consent-request/abc",
            "qrDataUrl": None,
            "expiresAt": "2026-01-01T12:05:00.250Z",
        }


class TestSerializeStatus:
    def test_pending_has_no_signing_id(self):
        body = serialize_status(_challenge())
        assert body == {
            "status": "pending",
            "createdAt": 1767268800250,
            "expiresAt": "2026-01-01T12:05:00.250Z",
        }

    def test_verified_includes_signing_id(self):
        body = serialize_status(
            _challenge(status=ChallengeStatus.VERIFIED, signing_id="iWallet")
        )
        assert body["status"] == "verified"
        assert body["signingId"] == "iWallet"
