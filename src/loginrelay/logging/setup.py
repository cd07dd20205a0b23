"""Structured logging configuration for the login relay.

Provides JSON and text formatters, a request-context filter that
injects Flask ``g`` attributes into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loginrelay.config.settings import LoggingSettings

# Context attributes injected by RequestContextFilter, with the value
# used outside a request or before the route knows a challenge.
_CONTEXT_DEFAULTS: dict[str, str | None] = {
    "request_id": "-",
    "client_ip": "-",
    "challenge_id": None,
    "method": None,
    "path": None,
}

# Anything on a record beyond these is caller-supplied "extra" data
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__,
) | {"message", "asctime", *_CONTEXT_DEFAULTS}


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        for name in _CONTEXT_DEFAULTS:
            value = getattr(record, name, None)
            if value is not None:
                data[name] = value

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use.

    Records logged while a challenge is in scope end with
    ``challenge=<id>``.
    """

    _FMT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(client_ip)s %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        challenge_id = getattr(record, "challenge_id", None)
        if challenge_id:
            head, sep, tail = line.partition("\n")
            line = f"{head} challenge={challenge_id}{sep}{tail}"
        return line


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RequestContextFilter(logging.Filter):
    """Inject Flask request context into every log record.

    Routes that resolve a challenge store its id on ``g.challenge_id``;
    every record emitted for the rest of that request carries it, so
    one login can be followed from issuance to verification.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for name, default in _CONTEXT_DEFAULTS.items():
            if not hasattr(record, name):
                setattr(record, name, default)

        from flask import g, has_request_context, request  # noqa: PLC0415

        if not has_request_context():
            return True

        record.request_id = getattr(g, "request_id", record.request_id)  # type: ignore[attr-defined]
        record.client_ip = request.remote_addr or record.client_ip  # type: ignore[attr-defined]
        record.method = request.method  # type: ignore[attr-defined]
        record.path = request.path  # type: ignore[attr-defined]
        if record.challenge_id is None:  # type: ignore[attr-defined]
            record.challenge_id = getattr(g, "challenge_id", None)  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``loginrelay`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output.
    Returns the root ``loginrelay`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("loginrelay")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(RequestContextFilter())
    root.addHandler(console)

    # Access and security loggers inherit the root handler
    logging.getLogger("loginrelay.access").setLevel(logging.INFO)
    logging.getLogger("loginrelay.security").setLevel(logging.INFO)

    for lib in ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
