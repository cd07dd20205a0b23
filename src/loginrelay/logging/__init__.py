"""Logging subsystem for the login relay.

Public API::

    from loginrelay.logging import configure_logging

    configure_logging(settings.logging)
"""

from loginrelay.logging.setup import configure_logging

__all__ = ["configure_logging"]
