"""Challenge storage.

Public API::

    from loginrelay.store import create_store

    store = create_store(settings.challenges)
"""

from loginrelay.store.base import ChallengeStore, TransitionResult
from loginrelay.store.memory import InMemoryChallengeStore, create_store

__all__ = [
    "ChallengeStore",
    "InMemoryChallengeStore",
    "TransitionResult",
    "create_store",
]
