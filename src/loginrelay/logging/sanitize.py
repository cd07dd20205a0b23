"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts key material and
signatures from data structures before they are written to logs.
Identity addresses and challenge ids are public and pass through.
"""

from __future__ import annotations

from typing import Any

_SECRET_FIELDS = frozenset(
    {
        "private_key",
        "privateKey",
        "signature",
        "seed",
        "wif",
    }
)

_REDACTED = "[REDACTED]"
_MAX_PREVIEW = 256


def truncate(value: str, limit: int = _MAX_PREVIEW) -> str:
    """Shorten long strings (deeplinks, payload previews) for logging."""
    if len(value) <= limit:
        return value
    return f"{value[:limit]}...({len(value)} chars)"


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*.

    Values under secret-looking keys are replaced with
    ``[REDACTED]``; long strings are truncated.  Non-sensitive data
    passes through unchanged.
    """
    if isinstance(data, dict):
        return {
            k: _REDACTED if k in _SECRET_FIELDS and v is not None else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str):
        return truncate(data)

    return data
