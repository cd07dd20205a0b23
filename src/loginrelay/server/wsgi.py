"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

Settings come from the environment, plus the optional config file
named by ``LOGINRELAY_CONFIG``.  Run exactly one worker process; the
challenge store lives in memory.

Example::

    export LOGINRELAY_CONFIG=/etc/loginrelay/relay.yaml
    gunicorn --workers 1 --threads 8 "loginrelay.server.wsgi:app"
"""

from __future__ import annotations

import os

from loginrelay.app import create_app
from loginrelay.config import load_settings
from loginrelay.logging import configure_logging

_settings = load_settings(os.environ.get("LOGINRELAY_CONFIG") or None)

configure_logging(_settings.logging)

app = create_app(_settings)
