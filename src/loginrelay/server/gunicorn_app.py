"""Programmatic gunicorn runner for the login relay.

Starts gunicorn with settings derived from the relay config rather
than requiring a separate gunicorn config file.

Usage::

    from loginrelay.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

    from loginrelay.config.settings import ServerSettings

log = logging.getLogger(__name__)


def run_gunicorn(app: Flask, settings: ServerSettings) -> None:
    """Start a gunicorn server from :class:`ServerSettings`.

    Raises :class:`RuntimeError` if gunicorn is not installed (e.g. on
    Windows).
    """
    try:
        from gunicorn.app.base import BaseApplication  # noqa: PLC0415
    except ImportError as exc:
        msg = (
            "gunicorn is not installed.  Install it with:\n"
            "    pip install gunicorn\n\n"
            "gunicorn only runs on Unix.  Use --dev for the Flask "
            "development server on Windows."
        )
        raise RuntimeError(msg) from exc

    class _App(BaseApplication):
        def __init__(self, flask_app: Flask, server: ServerSettings) -> None:
            self.application = flask_app
            self._server = server
            super().__init__()

        def load_config(self) -> None:
            s = self._server
            self.cfg.set("bind", f"{s.bind}:{s.port}")
            # Challenge state is per process
            self.cfg.set("workers", 1)
            self.cfg.set("threads", s.threads)
            self.cfg.set("worker_class", s.worker_class)
            self.cfg.set("timeout", s.timeout)
            self.cfg.set("graceful_timeout", s.graceful_timeout)
            self.cfg.set("keepalive", s.keepalive)
            # Silence gunicorn's own access log; loginrelay.access covers it
            self.cfg.set("accesslog", None)

        def load(self) -> Flask:
            return self.application

    log.info(
        "Starting gunicorn on %s:%s (1 worker, %d threads, %s)",
        settings.bind,
        settings.port,
        settings.threads,
        settings.worker_class,
    )
    _App(app, settings).run()
