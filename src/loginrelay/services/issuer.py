"""Challenge issuance.

Creates a login challenge, has the identity adapter sign the matching
login-consent request, and refuses to hand out anything that does not
verify after a round trip through its own deeplink form.  An
unverifiable request would strand the wallet, so self-verification
failure aborts issuance with :class:`InternalVerificationError`.

Usage::

    issuer = ChallengeIssuer(store, adapter, settings)
    issued = issuer.issue()
    issued.deeplink, issued.qr_data_url, issued.expires_at
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from loginrelay.core.errors import InternalVerificationError, SigningError
from loginrelay.core.ids import generate_challenge_id
from loginrelay.core.types import ChallengeStatus
from loginrelay.identity.base import IdentityError
from loginrelay.identity.models import (
    LOGIN_CONSENT_WEBHOOK,
    LoginConsentChallenge,
    RedirectUri,
    RequestedPermission,
)
from loginrelay.logging import security_events
from loginrelay.models.challenge import Challenge
from loginrelay.render.qr import QrRenderError, render_qr_data_url

if TYPE_CHECKING:
    from collections.abc import Callable

    from loginrelay.config.settings import RelaySettings
    from loginrelay.identity.base import IdentityAdapter
    from loginrelay.identity.models import LoginConsentRequest
    from loginrelay.metrics.collector import MetricsCollector
    from loginrelay.store.base import ChallengeStore

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IssuedChallenge:
    """What a client needs to present a challenge to a wallet."""

    challenge: Challenge
    deeplink: str
    qr_data_url: str | None

    @property
    def challenge_id(self) -> str:
        return self.challenge.id

    @property
    def expires_at(self) -> datetime:
        return self.challenge.expires_at


class ChallengeIssuer:
    """Issue signed, self-verified login challenges."""

    def __init__(  # noqa: PLR0913
        self,
        store: ChallengeStore,
        adapter: IdentityAdapter,
        settings: RelaySettings,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[int], str] = generate_challenge_id,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._settings = settings
        self._metrics = metrics
        self._clock = clock
        self._id_factory = id_factory
        self._ttl = timedelta(seconds=settings.challenges.ttl_seconds)
        self._callback_url = (
            settings.server.external_url.rstrip("/") + settings.verification.callback_path
        )

    @property
    def callback_url(self) -> str:
        """Public URL wallets post their responses to."""
        return self._callback_url

    def issue(self) -> IssuedChallenge:
        """Create, sign, self-verify and register a new challenge.

        Raises
        ------
        SigningError
            The adapter failed to sign the request.
        InternalVerificationError
            The signed request failed its own verification.
        DuplicateIdError
            The generated id already exists in the store.

        """
        now = self._clock()
        challenge_id = self._id_factory(self._settings.challenges.id_length_bytes)

        consent = LoginConsentChallenge(
            challenge_id=challenge_id,
            created_at=int(now.timestamp()),
            requested_access=tuple(
                RequestedPermission(p) for p in self._settings.identity.requested_permissions
            ),
            redirect_uris=(RedirectUri(self._callback_url, LOGIN_CONSENT_WEBHOOK),),
        )

        try:
            request = self._adapter.create_login_request(consent)
        except IdentityError as exc:
            security_events.signing_failed(challenge_id, exc.detail)
            self._count_error("signing")
            raise SigningError from exc

        deeplink = self._self_verify(request, challenge_id)

        challenge = Challenge(
            id=challenge_id,
            status=ChallengeStatus.PENDING,
            created_at=now,
            expires_at=now + self._ttl,
        )
        self._store.put(challenge)

        qr_data_url: str | None
        try:
            qr_data_url = render_qr_data_url(deeplink, self._settings.qr)
        except QrRenderError as exc:
            log.warning("QR rendering failed for challenge %s: %s", challenge_id, exc)
            qr_data_url = None

        security_events.challenge_issued(challenge_id, challenge.expires_at.isoformat())
        if self._metrics:
            self._metrics.increment("loginrelay_challenges_issued_total")
        return IssuedChallenge(challenge=challenge, deeplink=deeplink, qr_data_url=qr_data_url)

    def _self_verify(self, request: LoginConsentRequest, challenge_id: str) -> str:
        """Round-trip *request* through its deeplink and verify it.

        Returns the deeplink on success.
        """
        reason: str | None = None
        deeplink = ""
        try:
            deeplink = self._adapter.to_deeplink(request)
            decoded = self._adapter.from_deeplink(deeplink)
            if decoded != request:
                reason = "deeplink round trip altered the request"
            elif decoded.challenge.challenge_id != challenge_id:
                reason = "challenge id mismatch"
            elif not self._adapter.verify_login_request(decoded):
                reason = "signature did not verify"
        except (IdentityError, ValueError) as exc:
            reason = str(exc)

        if reason is not None:
            security_events.self_verification_failed(challenge_id, reason)
            self._count_error("self_verification")
            raise InternalVerificationError
        return deeplink

    def _count_error(self, reason: str) -> None:
        if self._metrics:
            self._metrics.increment(
                "loginrelay_issue_errors_total",
                labels={"reason": reason},
            )
