"""Login challenge entity."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from loginrelay.core.types import ChallengeStatus

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True)
class Challenge:
    """A single-use, time-bounded login challenge.

    ``signing_id`` is set only when the challenge is verified.
    ``reported`` becomes true once the platform acknowledged the
    verified outcome.
    """

    id: str
    status: ChallengeStatus
    created_at: datetime
    expires_at: datetime
    signing_id: str | None = None
    reported: bool = False
    failed_attempts: int = 0

    def is_past_expiry(self, now: datetime) -> bool:
        return now >= self.expires_at

    def effective(self, now: datetime) -> Challenge:
        """Return the view readers should observe at *now*.

        A pending challenge past its expiry is reported as expired.
        """
        if self.status == ChallengeStatus.PENDING and self.is_past_expiry(now):
            return replace(self, status=ChallengeStatus.EXPIRED)
        return self
