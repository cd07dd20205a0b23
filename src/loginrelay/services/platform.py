"""HTTP client for the platform session layer.

Posts verified outcomes to ``<internal_url><callback_path>``.  Every
transport problem is normalised into :class:`ReportingFailure`, with
``retryable`` set for anything other than a definitive 4xx answer.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from typing import TYPE_CHECKING

from loginrelay import __version__
from loginrelay.core.errors import ReportingFailure

if TYPE_CHECKING:
    from loginrelay.config.settings import PlatformSettings

log = logging.getLogger(__name__)

_RETRYABLE_CLIENT_STATUSES = frozenset({408, 425, 429})


class PlatformClient:
    """Deliver verified login outcomes to the platform."""

    def __init__(self, settings: PlatformSettings) -> None:
        self._url = settings.internal_url.rstrip("/") + settings.callback_path
        self._timeout = settings.timeout_seconds

    @property
    def url(self) -> str:
        return self._url

    def notify_verified(self, challenge_id: str, signing_id: str) -> int:
        """POST the outcome and return the HTTP status.

        Raises :class:`ReportingFailure` unless the platform answers 2xx.
        """
        payload = json.dumps(
            {
                "challengeId": challenge_id,
                "signingId": signing_id,
                "verified": True,
            }
        ).encode("utf-8")
        req = urllib.request.Request(
            self._url,
            data=payload,
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"loginrelay/{__version__}",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                status = resp.status
        except urllib.error.HTTPError as exc:
            status = exc.code
            exc.close()
            retryable = status >= 500 or status in _RETRYABLE_CLIENT_STATUSES  # noqa: PLR2004
            msg = f"Platform returned HTTP {status}"
            raise ReportingFailure(msg, retryable=retryable, status=status) from exc
        except urllib.error.URLError as exc:
            msg = f"Platform unreachable: {exc.reason}"
            raise ReportingFailure(msg, retryable=True) from exc
        except (TimeoutError, OSError) as exc:
            msg = f"Platform request failed: {exc}"
            raise ReportingFailure(msg, retryable=True) from exc
        except http.client.HTTPException as exc:
            msg = f"Platform sent a malformed response: {exc!r}"
            raise ReportingFailure(msg, retryable=True) from exc
        except Exception as exc:  # noqa: BLE001
            log.exception("Unexpected error posting outcome for challenge %s", challenge_id)
            msg = f"Platform request failed: {exc!r}"
            raise ReportingFailure(msg, retryable=True) from exc

        log.debug("Platform acknowledged challenge %s with HTTP %d", challenge_id, status)
        return status
