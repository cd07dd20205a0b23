"""Dependency injection container for the login relay.

Created once during application startup and stored on the Flask app
via ``app.extensions["container"]``.  Accessible from any request
context with :func:`get_container`.

Usage::

    from loginrelay.app.context import get_container

    c = get_container()
    issued = c.issuer.issue()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import current_app

from loginrelay.identity import GuardedIdentityAdapter, load_identity_adapter
from loginrelay.metrics.collector import MetricsCollector
from loginrelay.services import (
    ChallengeIssuer,
    CleanupWorker,
    OutcomeReporter,
    PlatformClient,
    ResponseVerifier,
    StatusQuery,
)
from loginrelay.store import create_store

if TYPE_CHECKING:
    from loginrelay.app.rate_limiter import InMemoryRateLimiter
    from loginrelay.config.settings import RelaySettings
    from loginrelay.identity.base import IdentityAdapter
    from loginrelay.store.base import ChallengeStore

log = logging.getLogger(__name__)


class Container:
    """Application-wide dependency container.

    Every collaborator can be injected; anything not supplied is built
    from *settings*.  The identity adapter is always wrapped in a
    :class:`GuardedIdentityAdapter` unless it already is one.
    """

    def __init__(  # noqa: PLR0913
        self,
        settings: RelaySettings,
        *,
        adapter: IdentityAdapter | None = None,
        store: ChallengeStore | None = None,
        platform_client: PlatformClient | None = None,
        metrics: MetricsCollector | None = None,
        rate_limiter: InMemoryRateLimiter | None = None,
    ) -> None:
        self.settings = settings
        self.metrics_collector = metrics or MetricsCollector()
        self.rate_limiter = rate_limiter

        # -- Store ---------------------------------------------------------
        self.store = store if store is not None else create_store(settings.challenges)

        # -- Identity adapter ----------------------------------------------
        raw = adapter if adapter is not None else load_identity_adapter(settings.identity)
        if isinstance(raw, GuardedIdentityAdapter):
            self.identity = raw
        else:
            self.identity = GuardedIdentityAdapter(
                raw,
                timeout_seconds=settings.identity.timeout_seconds,
                failure_threshold=settings.identity.circuit_breaker_failure_threshold,
                recovery_timeout=settings.identity.circuit_breaker_recovery_timeout,
            )

        # -- Services ------------------------------------------------------
        self.platform_client = platform_client or PlatformClient(settings.platform)
        self.reporter = OutcomeReporter(
            self.store,
            self.platform_client,
            settings.platform,
            metrics=self.metrics_collector,
        )
        self.issuer = ChallengeIssuer(
            self.store,
            self.identity,
            settings,
            metrics=self.metrics_collector,
        )
        self.verifier = ResponseVerifier(
            self.store,
            self.identity,
            self.reporter,
            settings.verification,
            metrics=self.metrics_collector,
        )
        self.status = StatusQuery(self.store)
        self.cleanup_worker = CleanupWorker(
            store=self.store,
            settings=settings,
            rate_limiter=rate_limiter,
            metrics=self.metrics_collector,
        )

    def start_workers(self) -> None:
        self.reporter.start()
        self.cleanup_worker.start()

    def stop_workers(self) -> None:
        """Stop background threads; safe to call more than once."""
        self.cleanup_worker.stop()
        self.reporter.stop()
        self.identity.shutdown()


def get_container() -> Container:
    """Return the :class:`Container` from the current Flask app.

    Raises :class:`RuntimeError` if ``create_app`` has not wired one.
    """
    container = current_app.extensions.get("container")
    if container is None:
        msg = "Dependency container not available -- was create_app() called?"
        raise RuntimeError(msg)
    return container
