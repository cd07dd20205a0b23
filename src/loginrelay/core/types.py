"""Enumerated types for the login relay.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that round-trips through JSON unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Challenge
# ---------------------------------------------------------------------------


class ChallengeStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Store compare-and-set outcomes
# ---------------------------------------------------------------------------


class TransitionOutcome(StrEnum):
    """Result of :meth:`ChallengeStore.transition`.

    Only ``APPLIED`` means the caller won the compare-and-set.  The
    others are non-fatal conflicts the caller must interpret.
    """

    APPLIED = "applied"
    ALREADY_RESOLVED = "already_resolved"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


# ---------------------------------------------------------------------------
# Outcome report delivery
# ---------------------------------------------------------------------------


class ReportOutcome(StrEnum):
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    RETRY = "retry"
    DEAD = "dead"
