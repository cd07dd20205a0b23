"""Abstract base class for challenge stores.

A store is the single authoritative record of outstanding challenges.
Implementations must make :meth:`ChallengeStore.transition` an atomic
compare-and-set so that, of several concurrent verifications of the
same challenge, exactly one observes ``APPLIED``.

Readers never see a pending challenge past its expiry: :meth:`get`
returns such a record with its status coerced to ``expired``.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loginrelay.core.types import ChallengeStatus, TransitionOutcome
    from loginrelay.models.challenge import Challenge


@dataclass(frozen=True)
class TransitionResult:
    """Result of a compare-and-set on a challenge.

    Attributes
    ----------
    outcome:
        ``applied`` when this call performed the transition, otherwise
        the reason it did not.
    challenge:
        The record as it stands after the call, ``None`` when not found.

    """

    outcome: TransitionOutcome
    challenge: Challenge | None

    @property
    def applied(self) -> bool:
        return self.outcome == "applied"


class ChallengeStore(abc.ABC):
    """Interface over the challenge record set."""

    @abc.abstractmethod
    def put(self, challenge: Challenge) -> None:
        """Insert a new pending challenge.

        Raises
        ------
        DuplicateIdError
            If a record with the same id already exists.

        """

    @abc.abstractmethod
    def get(self, challenge_id: str) -> Challenge | None:
        """Return the lazily-expired view of a challenge, or ``None``."""

    @abc.abstractmethod
    def transition(
        self,
        challenge_id: str,
        new_status: ChallengeStatus,
        signing_id: str | None = None,
    ) -> TransitionResult:
        """Move a pending, unexpired challenge to *new_status*."""

    @abc.abstractmethod
    def record_failure(self, challenge_id: str, max_failures: int) -> Challenge | None:
        """Count a rejected response against a pending challenge.

        Once *max_failures* (when positive) is reached the challenge
        moves to ``failed``.  Returns the updated record, or ``None``
        when the challenge is unknown or no longer pending.
        """

    @abc.abstractmethod
    def mark_reported(self, challenge_id: str) -> bool:
        """Set the ``reported`` flag.

        Returns ``False`` if it was already set or the record is gone.
        """

    @abc.abstractmethod
    def sweep(self) -> int:
        """Remove records past expiry plus the grace window.

        Returns the number of records removed.
        """

    @abc.abstractmethod
    def __len__(self) -> int:
        """Return the number of stored records."""
