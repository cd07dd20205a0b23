"""Identity-protocol adapters.

Public API::

    from loginrelay.identity import load_identity_adapter

    adapter = load_identity_adapter(settings.identity)
"""

from loginrelay.identity.base import IdentityAdapter, IdentityError
from loginrelay.identity.guard import GuardedIdentityAdapter
from loginrelay.identity.registry import load_identity_adapter

__all__ = [
    "GuardedIdentityAdapter",
    "IdentityAdapter",
    "IdentityError",
    "load_identity_adapter",
]
