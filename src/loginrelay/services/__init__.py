"""Application services: issuance, verification, reporting and upkeep."""

from loginrelay.services.cleanup_worker import CleanupWorker
from loginrelay.services.issuer import ChallengeIssuer, IssuedChallenge
from loginrelay.services.platform import PlatformClient
from loginrelay.services.reporter import OutcomeReporter
from loginrelay.services.status import StatusQuery
from loginrelay.services.verifier import ResponseVerifier, VerificationResult

__all__ = [
    "ChallengeIssuer",
    "CleanupWorker",
    "IssuedChallenge",
    "OutcomeReporter",
    "PlatformClient",
    "ResponseVerifier",
    "StatusQuery",
    "VerificationResult",
]
