"""Entity models for the login relay.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from loginrelay.models.challenge import Challenge

__all__ = ["Challenge"]
