"""JSON error responses.

Every error leaving the service is rendered as::

    {"error": "<client-safe message>", "code": "<stable_code>"}

:class:`~loginrelay.core.errors.RelayError` carries its own status and
code.  Werkzeug HTTP errors (404 routing, 405, 413 body limit) are
mapped onto the same shape, and anything else becomes a generic 500
whose details only reach the log.
"""

from __future__ import annotations

import logging
import re

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from loginrelay.core.errors import RelayError

log = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^a-z0-9]+")


def error_response(
    message: str,
    code: str,
    status: int,
    headers: dict[str, str] | None = None,
) -> Response:
    """Build a Flask :class:`~flask.Response` for an error."""
    resp = jsonify({"error": message, "code": code})
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    for key, value in (headers or {}).items():
        resp.headers[key] = value
    return resp


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce JSON responses for all errors."""

    @app.errorhandler(RelayError)
    def _handle_relay_error(exc: RelayError) -> Response:
        return error_response(exc.message, exc.code, exc.status, exc.extra_headers)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException) -> Response:
        name = exc.name or "error"
        code = _NON_WORD.sub("_", name.lower()).strip("_")
        return error_response(exc.description or name, code, exc.code or 500)

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception) -> Response:
        # HTTPException subclasses are already caught above
        log.exception("Unhandled exception during request")
        return error_response("An unexpected internal error occurred", "internal_error", 500)
