"""Wallet response verification.

Turns a posted login-consent response into a committed challenge
transition.  Adapter errors and malformed input are normalised into
the relay's error taxonomy here so nothing raw reaches the HTTP layer.

Outcomes of the final compare-and-set:

* ``applied``: first valid response; the outcome is queued for the
  platform.
* ``already_resolved`` by the same identity: an idempotent retry,
  acknowledged without a second report.
* anything else: :class:`ChallengeExpiredOrUnknown`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loginrelay.core.errors import (
    ChallengeExpiredOrUnknown,
    MalformedResponse,
    VerificationFailed,
)
from loginrelay.core.types import ChallengeStatus, TransitionOutcome
from loginrelay.identity.base import IdentityError
from loginrelay.logging import security_events

if TYPE_CHECKING:
    from loginrelay.config.settings import VerificationSettings
    from loginrelay.identity.base import IdentityAdapter
    from loginrelay.identity.models import LoginConsentResponse
    from loginrelay.metrics.collector import MetricsCollector
    from loginrelay.models.challenge import Challenge
    from loginrelay.services.reporter import OutcomeReporter
    from loginrelay.store.base import ChallengeStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    """A successfully verified response.

    ``first`` is true only for the call that moved the challenge to
    verified; idempotent retries see ``False``.
    """

    challenge: Challenge
    signing_id: str
    first: bool

    @property
    def challenge_id(self) -> str:
        return self.challenge.id


class ResponseVerifier:
    """Verify wallet responses and commit their outcome."""

    def __init__(  # noqa: PLR0913
        self,
        store: ChallengeStore,
        adapter: IdentityAdapter,
        reporter: OutcomeReporter,
        settings: VerificationSettings,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._adapter = adapter
        self._reporter = reporter
        self._settings = settings
        self._metrics = metrics

    def verify(self, payload: Any, *, client_ip: str | None = None) -> VerificationResult:  # noqa: ANN401
        """Verify *payload* and transition its challenge to verified.

        Raises
        ------
        MalformedResponse
            The payload is not a login-consent response.
        VerificationFailed
            A signature did not verify, or the adapter could not answer.
        ChallengeExpiredOrUnknown
            The proof is valid but its challenge is unknown, expired or
            already resolved differently.

        """
        response = self._parse(payload, client_ip)
        challenge_id = response.challenge_id
        signing_id = response.signing_id

        self._check_signatures(response, client_ip)

        result = self._store.transition(challenge_id, ChallengeStatus.VERIFIED, signing_id)

        if result.outcome == TransitionOutcome.APPLIED:
            security_events.challenge_verified(challenge_id, signing_id)
            self._count("verified")
            self._submit_report(challenge_id, signing_id)
            return VerificationResult(result.challenge, signing_id, first=True)

        current = result.challenge
        if (
            result.outcome == TransitionOutcome.ALREADY_RESOLVED
            and current is not None
            and current.status == ChallengeStatus.VERIFIED
            and current.signing_id == signing_id
        ):
            log.info("Duplicate response for verified challenge %s acknowledged", challenge_id)
            self._count("duplicate")
            return VerificationResult(current, signing_id, first=False)

        security_events.response_rejected(
            str(result.outcome),
            challenge_id=challenge_id,
            signing_id=signing_id,
            client_ip=client_ip,
        )
        self._count(str(result.outcome))
        raise ChallengeExpiredOrUnknown

    # -- steps ---------------------------------------------------------------

    def _parse(self, payload: Any, client_ip: str | None) -> LoginConsentResponse:  # noqa: ANN401
        try:
            return self._adapter.parse_login_response(payload)
        except (IdentityError, ValueError, TypeError, KeyError) as exc:
            security_events.response_rejected("malformed", client_ip=client_ip)
            log.debug("Unparseable login response: %s", exc)
            self._count("malformed")
            raise MalformedResponse from exc

    def _check_signatures(self, response: LoginConsentResponse, client_ip: str | None) -> None:
        """Raise :class:`VerificationFailed` unless both signatures hold.

        The echoed request must be one this service signed, and the
        response must be signed by the identity it names.  A failure
        counts against the challenge only when the echoed request is
        genuinely ours, so forged payloads cannot exhaust it.
        """
        challenge_id = response.challenge_id
        request = response.decision.request
        own_request = False
        try:
            if request.signing_id != self._adapter.signing_id:
                reason = "request not issued by this service"
            elif not self._adapter.verify_login_request(request):
                reason = "request signature invalid"
            elif not self._adapter.verify_login_response(response):
                reason = "response signature invalid"
                own_request = True
            else:
                return
        except IdentityError as exc:
            # Adapter could not answer; the wallet is not at fault
            log.warning("Identity adapter error verifying %s: %s", challenge_id, exc.detail)
            security_events.response_rejected(
                "adapter_error",
                challenge_id=challenge_id,
                signing_id=response.signing_id,
                client_ip=client_ip,
            )
            self._count("adapter_error")
            raise VerificationFailed from exc

        security_events.response_rejected(
            reason,
            challenge_id=challenge_id,
            signing_id=response.signing_id,
            client_ip=client_ip,
        )
        self._count("invalid_signature")
        if own_request:
            updated = self._store.record_failure(challenge_id, self._settings.max_failed_attempts)
            if updated is not None and updated.status == ChallengeStatus.FAILED:
                security_events.challenge_failed(challenge_id, updated.failed_attempts)
        raise VerificationFailed

    def _submit_report(self, challenge_id: str, signing_id: str) -> None:
        try:
            self._reporter.submit(challenge_id, signing_id)
        except Exception:
            # Verification is already committed; reporting is best-effort
            log.exception("Failed to queue outcome report for challenge %s", challenge_id)
            if self._metrics:
                self._metrics.increment(
                    "loginrelay_reports_total",
                    labels={"outcome": "enqueue_error"},
                )

    def _count(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.increment(
                "loginrelay_verifications_total",
                labels={"outcome": outcome},
            )
