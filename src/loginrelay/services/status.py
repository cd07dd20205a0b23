"""Read-only challenge status lookups for the platform."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loginrelay.core.errors import ChallengeNotFoundError

if TYPE_CHECKING:
    from loginrelay.models.challenge import Challenge
    from loginrelay.store.base import ChallengeStore


class StatusQuery:
    def __init__(self, store: ChallengeStore) -> None:
        self._store = store

    def lookup(self, challenge_id: str) -> Challenge:
        """Return the challenge as currently observed.

        A pending challenge past its TTL reads as expired even before
        the sweeper persists that.  Unknown or swept ids raise
        :class:`ChallengeNotFoundError`.
        """
        challenge = self._store.get(challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError
        return challenge
