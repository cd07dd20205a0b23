"""Response serialization for challenges.

Field names are camelCase because the wallet-facing and platform-facing
clients already consume them in that shape.
"""

from __future__ import annotations

from datetime import UTC
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from loginrelay.models.challenge import Challenge
    from loginrelay.services.issuer import IssuedChallenge


def iso_timestamp(value: datetime) -> str:
    """``2026-01-01T12:00:00.000Z`` style UTC timestamp."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def serialize_issued(issued: IssuedChallenge) -> dict[str, Any]:
    """Serialize a freshly issued challenge for ``POST /login``."""
    return {
        "challengeId": issued.challenge_id,
        "deeplink": issued.deeplink,
        "qrDataUrl": issued.qr_data_url,
        "expiresAt": iso_timestamp(issued.expires_at),
    }


def serialize_status(challenge: Challenge) -> dict[str, Any]:
    """Serialize a challenge for ``GET /status/<id>``.

    ``signingId`` is present only once the challenge is verified.
    """
    result: dict[str, Any] = {
        "status": str(challenge.status),
        "createdAt": epoch_millis(challenge.created_at),
        "expiresAt": iso_timestamp(challenge.expires_at),
    }
    if challenge.signing_id is not None:
        result["signingId"] = challenge.signing_id
    return result
