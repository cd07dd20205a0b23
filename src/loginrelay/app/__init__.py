"""Flask application package for the login relay.

Public API::

    from loginrelay.app import create_app
"""

from loginrelay.app.factory import create_app

__all__ = ["create_app"]
