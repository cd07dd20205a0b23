"""HTTP API layer -- Flask blueprint registration.

Call :func:`register_blueprints` during application startup to wire
the relay's routes into the Flask app.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)


def register_blueprints(app: Flask) -> None:
    """Register the relay blueprints on the Flask application.

    The wallet callback path comes from ``verification.callback_path``;
    the metrics endpoint is mounted only when ``metrics.enabled``.
    """
    settings = app.config["RELAY_SETTINGS"]

    from loginrelay.api.callback import create_callback_blueprint  # noqa: PLC0415
    from loginrelay.api.login import login_bp  # noqa: PLC0415
    from loginrelay.api.status import status_bp  # noqa: PLC0415

    app.register_blueprint(login_bp, url_prefix="/login")
    app.register_blueprint(
        create_callback_blueprint(),
        url_prefix=settings.verification.callback_path,
    )
    app.register_blueprint(status_bp, url_prefix="/status")
    log.info("Wallet callback registered at %s", settings.verification.callback_path)

    if settings.metrics.enabled:
        from loginrelay.api.metrics import metrics_bp  # noqa: PLC0415

        app.register_blueprint(metrics_bp, url_prefix=settings.metrics.path)
        log.info("Metrics endpoint registered at %s", settings.metrics.path)
