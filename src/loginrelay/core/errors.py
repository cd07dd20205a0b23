"""Error taxonomy for the login relay.

Every error that may cross into the HTTP layer subclasses
:class:`RelayError`, which carries an HTTP status, a stable machine
readable ``code`` and a client-safe message.  The registered Flask
error handler renders it as ``{"error": ..., "code": ...}``.

Usage::

    raise VerificationFailed("Signature verification failed")
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for errors that render as JSON error responses.

    Parameters
    ----------
    message:
        Client-safe explanation.  Falls back to the class default.
    status:
        HTTP status override.
    headers:
        Extra HTTP headers to include on the response
        (e.g. ``Retry-After``).

    """

    status: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        status: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if status is not None:
            self.status = status
        self.extra_headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


class SigningError(RelayError):
    """The identity adapter could not sign a login-consent request."""

    status = 500
    code = "signing_failed"
    default_message = "Failed to create login challenge"


class InternalVerificationError(RelayError):
    """A freshly signed request failed its own verification."""

    status = 500
    code = "self_verification_failed"
    default_message = "Failed to self-verify login request"


class DuplicateIdError(RelayError):
    """A challenge id collided with an existing record."""

    status = 500
    code = "duplicate_id"
    default_message = "Failed to create login challenge"


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class MalformedResponse(RelayError):
    status = 400
    code = "malformed_response"
    default_message = "Malformed login response"


class VerificationFailed(RelayError):
    status = 400
    code = "signature_invalid"
    default_message = "Signature verification failed"


class ChallengeExpiredOrUnknown(RelayError):
    status = 400
    code = "challenge_expired_or_unknown"
    default_message = "Challenge expired or unknown"


# ---------------------------------------------------------------------------
# Lookup and request limits
# ---------------------------------------------------------------------------


class ChallengeNotFoundError(RelayError):
    status = 404
    code = "not_found"
    default_message = "Not found"


class RateLimited(RelayError):
    status = 429
    code = "rate_limited"
    default_message = "Rate limit exceeded"


# ---------------------------------------------------------------------------
# Downstream reporting (never rendered to a client)
# ---------------------------------------------------------------------------


class ReportingFailure(Exception):
    """Delivery of a verified outcome to the platform failed.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and delivery may be retried.
    status:
        HTTP status returned by the platform, when there was one.

    """

    code = "reporting_failed"

    def __init__(
        self,
        detail: str,
        *,
        retryable: bool = True,
        status: int | None = None,
    ) -> None:
        self.detail = detail
        self.retryable = retryable
        self.status = status
        super().__init__(detail)
