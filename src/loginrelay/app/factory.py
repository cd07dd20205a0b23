"""Flask application factory for the login relay.

Usage::

    from loginrelay.app import create_app
    from loginrelay.config import load_settings

    app = create_app(load_settings("relay.yaml"))
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue

    from loginrelay.app.context import Container
    from loginrelay.config.settings import RelaySettings

log = logging.getLogger(__name__)


def create_app(
    settings: RelaySettings | None = None,
    container: Container | None = None,
    *,
    start_workers: bool = True,
) -> Flask:
    """Create and configure the relay's Flask application.

    Parameters
    ----------
    settings:
        Loaded :class:`RelaySettings`.  Falls back to
        :func:`~loginrelay.config.load_settings` (environment only)
        when ``None``.
    container:
        Pre-built dependency container.  Tests inject one with fake
        collaborators; production builds it from *settings*.
    start_workers:
        Start the outcome reporter and cleanup worker threads and
        register their shutdown with :mod:`atexit`.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    if settings is None:
        from loginrelay.config import load_settings  # noqa: PLC0415

        settings = container.settings if container is not None else load_settings()

    app = Flask("loginrelay")
    app.config["RELAY_SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = settings.security.max_request_body_bytes

    # -- WSGI middleware (outermost layer) -----------------------------------
    if settings.server.proxy_hops > 0:
        from werkzeug.middleware.proxy_fix import ProxyFix  # noqa: PLC0415

        hops = settings.server.proxy_hops
        app.wsgi_app = ProxyFix(  # type: ignore[method-assign]
            app.wsgi_app,
            x_for=hops,
            x_proto=hops,
            x_host=hops,
            x_prefix=hops,
        )
        log.info("Proxy middleware enabled (%d trusted hops)", hops)

    # -- Error handlers -----------------------------------------------------
    from loginrelay.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from loginrelay.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Dependency container -----------------------------------------------
    if container is None:
        from loginrelay.app.context import Container  # noqa: PLC0415
        from loginrelay.app.rate_limiter import create_rate_limiter  # noqa: PLC0415

        container = Container(
            settings,
            rate_limiter=create_rate_limiter(settings.security.rate_limits),
        )
    app.extensions["container"] = container
    if container.rate_limiter is not None:
        app.extensions["rate_limiter"] = container.rate_limiter

    # -- Infrastructure endpoints -------------------------------------------
    _register_health(app)

    # -- API routes ---------------------------------------------------------
    from loginrelay.api import register_blueprints  # noqa: PLC0415

    register_blueprints(app)

    # -- Background workers -------------------------------------------------
    if start_workers:
        container.start_workers()
        atexit.register(container.stop_workers)

    log.info("Flask application created")
    return app


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register the ``/health`` endpoint."""
    from loginrelay import __version__  # noqa: PLC0415

    @app.route("/health")
    def health() -> ResponseReturnValue:
        """Return liveness plus background worker status."""
        container = app.extensions["container"]
        result: dict = {
            "status": "ok",
            "uptime": round(container.metrics_collector.uptime_seconds, 3),
            "version": __version__,
            "challenges": len(container.store),
        }

        # Worker liveness, only for workers that were started
        workers_status: dict = {}
        for name, worker in (
            ("outcome_reporter", container.reporter),
            ("cleanup_worker", container.cleanup_worker),
        ):
            if not worker.started:
                continue
            alive = worker.is_alive
            workers_status[name] = "alive" if alive else "dead"
            if not alive:
                result["status"] = "degraded"
        result["workers"] = workers_status

        result["identity"] = container.identity.state
        result["reports_pending"] = container.reporter.pending_count

        code = 200 if result["status"] == "ok" else 503
        return jsonify(result), code
