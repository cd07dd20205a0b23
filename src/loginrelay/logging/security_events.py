"""Structured security event logger.

Emits standardized security events for SIEM integration.  All events
are logged to the ``loginrelay.security`` logger with a consistent
``event_id`` field for filtering and alerting.

Sensitive material (private keys, signatures) is redacted via
:func:`~loginrelay.logging.sanitize.sanitize_for_logs` before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from loginrelay.logging.sanitize import sanitize_for_logs

security_log = logging.getLogger("loginrelay.security")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured security event.

    All *extra* keyword arguments are sanitized before logging.
    """
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    security_log.log(level, message, *args, extra=data)


def challenge_issued(challenge_id: str, expires_at: str) -> None:
    """Log issuance of a new login challenge."""
    _emit(
        "loginrelay.security.challenge_issued",
        "Challenge issued: %s",
        challenge_id,
        challenge_id=challenge_id,
        expires_at=expires_at,
    )


def self_verification_failed(challenge_id: str, reason: str) -> None:
    """Log a freshly signed request that failed its own verification.

    This indicates misconfigured keys or a broken adapter; every login
    attempt will fail until it is fixed.
    """
    _emit(
        "loginrelay.security.self_verification_failed",
        "Self-verification of login request %s failed: %s",
        challenge_id,
        reason,
        severity="CRITICAL",
        challenge_id=challenge_id,
        reason=reason,
    )


def signing_failed(challenge_id: str, reason: str) -> None:
    _emit(
        "loginrelay.security.signing_failed",
        "Signing login request %s failed: %s",
        challenge_id,
        reason,
        severity="ERROR",
        challenge_id=challenge_id,
        reason=reason,
    )


def response_rejected(
    reason: str,
    *,
    challenge_id: str | None = None,
    signing_id: str | None = None,
    client_ip: str | None = None,
) -> None:
    """Log a wallet response that was rejected."""
    _emit(
        "loginrelay.security.response_rejected",
        "Login response rejected (%s): challenge=%s, signer=%s",
        reason,
        challenge_id,
        signing_id,
        severity="WARNING",
        reason=reason,
        challenge_id=challenge_id,
        signing_id=signing_id,
        remote_ip=client_ip,
    )


def challenge_verified(challenge_id: str, signing_id: str) -> None:
    """Log a challenge moving to verified."""
    _emit(
        "loginrelay.security.challenge_verified",
        "Challenge %s verified by %s",
        challenge_id,
        signing_id,
        challenge_id=challenge_id,
        signing_id=signing_id,
    )


def challenge_failed(challenge_id: str, attempts: int) -> None:
    """Log a challenge failed after too many invalid responses."""
    _emit(
        "loginrelay.security.challenge_failed",
        "Challenge %s failed after %d invalid responses",
        challenge_id,
        attempts,
        severity="WARNING",
        challenge_id=challenge_id,
        attempts=attempts,
    )


def report_delivered(challenge_id: str, signing_id: str, attempts: int) -> None:
    _emit(
        "loginrelay.security.report_delivered",
        "Outcome for challenge %s delivered to platform (attempt %d)",
        challenge_id,
        attempts,
        challenge_id=challenge_id,
        signing_id=signing_id,
        attempts=attempts,
    )


def report_failed(challenge_id: str, signing_id: str, attempts: int, error: str) -> None:
    """Log an outcome report that will not be retried any further."""
    _emit(
        "loginrelay.security.report_failed",
        "Outcome for challenge %s could not be delivered after %d attempts: %s",
        challenge_id,
        attempts,
        error,
        severity="ERROR",
        challenge_id=challenge_id,
        signing_id=signing_id,
        attempts=attempts,
        error=error,
    )


def rate_limit_exceeded(client_ip: str, category: str) -> None:
    _emit(
        "loginrelay.security.rate_limit_exceeded",
        "Rate limit exceeded: ip=%s, category=%s",
        client_ip,
        category,
        severity="WARNING",
        remote_ip=client_ip,
        category=category,
    )
