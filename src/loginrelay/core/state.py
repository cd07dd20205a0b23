"""Challenge state machine.

Defines the valid status transitions for a login challenge.  All
transitions are enforced via :func:`assert_transition`.

Usage::

    from loginrelay.core.state import CHALLENGE_TRANSITIONS, assert_transition
    from loginrelay.core.types import ChallengeStatus

    assert_transition(
        ChallengeStatus.PENDING, ChallengeStatus.VERIFIED,
        CHALLENGE_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging

from loginrelay.core.types import ChallengeStatus

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Challenge: pending → verified/failed/expired.  All others are terminal.
# ---------------------------------------------------------------------------

CHALLENGE_TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.PENDING: frozenset(
        {
            ChallengeStatus.VERIFIED,
            ChallengeStatus.FAILED,
            ChallengeStatus.EXPIRED,
        }
    ),
    ChallengeStatus.VERIFIED: frozenset(),
    ChallengeStatus.FAILED: frozenset(),
    ChallengeStatus.EXPIRED: frozenset(),
}

TERMINAL_STATUSES: frozenset[ChallengeStatus] = frozenset(
    status for status, targets in CHALLENGE_TRANSITIONS.items() if not targets
)


def assert_transition(
    current: ChallengeStatus,
    target: ChallengeStatus,
    table: dict = CHALLENGE_TRANSITIONS,
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed.

    Parameters
    ----------
    current:
        The current status of the challenge.
    target:
        The desired new status.
    table:
        Transition table, :data:`CHALLENGE_TRANSITIONS` by default.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)


def log_transition(
    resource_type: str,
    resource_id,
    from_status,
    to_status,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a state transition."""
    extra = {
        "event": "state_transition",
        "resource_type": resource_type,
        "resource_id": str(resource_id),
        "from_status": from_status.value if hasattr(from_status, "value") else str(from_status),
        "to_status": to_status.value if hasattr(to_status, "value") else str(to_status),
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "%s %s: %s -> %s%s",
        resource_type,
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
