"""Abstract base class for identity-protocol adapters.

The relay never implements the identity protocol's cryptography
itself.  An adapter builds and signs login-consent requests and
verifies requests and wallet responses.  Built-in and custom adapters
inherit from :class:`IdentityAdapter`.

Verification methods return ``False`` for a proof that does not hold
and raise :class:`IdentityError` only when the adapter itself cannot
answer (bad key material, unreachable chain API, timeout).
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING, Any

from loginrelay.identity.models import LoginConsentRequest, LoginConsentResponse

if TYPE_CHECKING:
    from loginrelay.config.settings import IdentitySettings
    from loginrelay.identity.models import LoginConsentChallenge

log = logging.getLogger(__name__)


class IdentityError(Exception):
    """Raised by identity adapters on operational failure.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and the operation may be retried.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class IdentityAdapter(abc.ABC):
    """Base class for identity-protocol adapters.

    Parameters
    ----------
    settings:
        The ``identity`` section from :class:`RelaySettings`.

    """

    def __init__(self, settings: IdentitySettings) -> None:
        self._settings = settings

    @property
    def signing_id(self) -> str:
        """The identity address this service signs requests as."""
        return self._settings.signing_id

    @property
    def system_id(self) -> str:
        """The chain i-address requests are bound to."""
        return self._settings.chain_id

    @abc.abstractmethod
    def create_login_request(self, challenge: LoginConsentChallenge) -> LoginConsentRequest:
        """Build and sign a login-consent request for *challenge*."""

    @abc.abstractmethod
    def verify_login_request(self, request: LoginConsentRequest) -> bool:
        """Return whether *request* carries a valid signature."""

    @abc.abstractmethod
    def verify_login_response(self, response: LoginConsentResponse) -> bool:
        """Return whether *response* carries a valid wallet signature."""

    def parse_login_response(self, payload: Any) -> LoginConsentResponse:  # noqa: ANN401
        """Parse a wallet's posted payload.

        Raises :class:`ValueError` if the payload does not describe a
        login-consent response.
        """
        return LoginConsentResponse.from_dict(payload)

    def to_deeplink(self, request: LoginConsentRequest) -> str:
        return request.to_deeplink(self._settings.deeplink_scheme)

    def from_deeplink(self, uri: str) -> LoginConsentRequest:
        return LoginConsentRequest.from_deeplink(uri)

    def startup_check(self) -> None:  # noqa: B027
        """Validate the adapter is operational.

        Called once at startup.  Raise :class:`IdentityError` if the
        adapter cannot sign or verify.
        """
