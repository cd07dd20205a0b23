"""Request lifecycle hooks.

Registered via :func:`register_request_hooks`:
    * Request ID generation / passthrough (``X-Request-ID``)
    * Per-category rate limiting of the public endpoints
    * Request timing
    * CORS and security response headers
    * Structured access logging and request metrics
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING
from uuid import uuid4

from flask import Flask, Response, g, request

if TYPE_CHECKING:
    from loginrelay.config.settings import RelaySettings

log = logging.getLogger(__name__)
access_log = logging.getLogger("loginrelay.access")


def rate_limit_category(path: str, settings: RelaySettings) -> str | None:
    """Map a request path to its rate-limit category, if any."""
    if path == "/login":
        return "login"
    if path == settings.verification.callback_path:
        return "callback"
    if path.startswith("/status/"):
        return "status"
    return None


def register_request_hooks(app: Flask) -> None:
    """Register before/after request hooks for ID tracking, limits,
    headers and access logging.
    """

    @app.before_request
    def _before_request() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g.start_time = time.monotonic()

        if request.method == "OPTIONS":
            return

        rate_limiter = app.extensions.get("rate_limiter")
        settings = app.config.get("RELAY_SETTINGS")
        if rate_limiter is not None and settings is not None:
            category = rate_limit_category(request.path, settings)
            if category:
                rate_limiter.check(request.remote_addr or "unknown", category)

    @app.after_request
    def _after_request(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        settings = app.config.get("RELAY_SETTINGS")
        if settings is not None and settings.server.cors_origin:
            response.headers["Access-Control-Allow-Origin"] = settings.server.cors_origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Request-ID"

        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id

        status = response.status_code
        container = app.extensions.get("container")
        if container is not None:
            container.metrics_collector.increment(
                "loginrelay_http_requests_total",
                labels={"method": request.method, "status": str(status)},
            )

        duration_ms = _elapsed_ms()
        level = (
            logging.WARNING
            if 400 <= status < 500  # noqa: PLR2004
            else logging.ERROR
            if status >= 500  # noqa: PLR2004
            else logging.INFO
        )
        access_log.log(
            level,
            "%s %s %s %.1fms",
            request.method,
            request.path,
            status,
            duration_ms,
            extra={
                "status": status,
                "duration_ms": round(duration_ms, 1),
                "content_length": response.content_length,
            },
        )

        return response


def _elapsed_ms() -> float:
    start = getattr(g, "start_time", None)
    if start is None:
        return 0.0
    return (time.monotonic() - start) * 1000
