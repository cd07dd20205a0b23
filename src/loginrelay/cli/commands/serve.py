"""Serve subcommand -- start the relay."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import argparse

    from loginrelay.config.settings import RelaySettings

log = logging.getLogger(__name__)


def run_serve(settings: RelaySettings, args: argparse.Namespace) -> None:
    """Check the signing identity, then serve with gunicorn or Flask."""
    from loginrelay.app import create_app  # noqa: PLC0415

    app = create_app(settings)

    try:
        app.extensions["container"].identity.startup_check()
    except Exception as exc:
        msg = f"identity adapter startup check failed: {exc}"
        raise RuntimeError(msg) from exc

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=settings.server.bind,
            port=settings.server.port,
            debug=True,
            use_reloader=False,
            threaded=True,
        )
    else:
        from loginrelay.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

        run_gunicorn(app, settings.server)
