"""Timeout and circuit breaker wrapper for identity adapter calls.

Wraps an :class:`IdentityAdapter` so that no signing or verification
call blocks a request thread for longer than ``identity.timeout_seconds``
and so that an adapter failing repeatedly is failed fast.

States:
    **closed**: calls pass through normally.  Operational failures are
    counted.
    **open**: calls fail immediately with a retryable ``IdentityError``.
    **half-open**: one trial call is allowed through; success resets
    to closed, failure reopens.

A ``False`` verification result is an answer, not a failure, and does
not count toward the threshold.

Usage::

    guarded = GuardedIdentityAdapter(adapter, timeout_seconds=5.0)
    request = guarded.create_login_request(challenge)
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from loginrelay.identity.base import IdentityAdapter, IdentityError

if TYPE_CHECKING:
    from collections.abc import Callable

    from loginrelay.identity.models import (
        LoginConsentChallenge,
        LoginConsentRequest,
        LoginConsentResponse,
    )

log = logging.getLogger(__name__)

T = TypeVar("T")


class _State(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class GuardedIdentityAdapter(IdentityAdapter):
    """Transparent timeout and circuit breaker around a real adapter.

    Parameters
    ----------
    adapter:
        The adapter to protect.
    timeout_seconds:
        Upper bound for any single adapter call.
    failure_threshold:
        Consecutive operational failures before opening the circuit.
    recovery_timeout:
        Seconds to wait in the open state before allowing a trial call.
    max_workers:
        Size of the thread pool executing adapter calls.

    """

    def __init__(
        self,
        adapter: IdentityAdapter,
        timeout_seconds: float,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        max_workers: int = 8,
    ) -> None:
        super().__init__(adapter._settings)  # noqa: SLF001
        self._adapter = adapter
        self._timeout = timeout_seconds
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="identity",
        )

        self._lock = threading.Lock()
        self._state = _State.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        """Current circuit state as a string."""
        with self._lock:
            return self._state.value

    @property
    def signing_id(self) -> str:
        return self._adapter.signing_id

    @property
    def system_id(self) -> str:
        return self._adapter.system_id

    # -- guarded operations --------------------------------------------------

    def create_login_request(self, challenge: LoginConsentChallenge) -> LoginConsentRequest:
        return self._call("create_login_request", self._adapter.create_login_request, challenge)

    def verify_login_request(self, request: LoginConsentRequest) -> bool:
        return self._call("verify_login_request", self._adapter.verify_login_request, request)

    def verify_login_response(self, response: LoginConsentResponse) -> bool:
        return self._call("verify_login_response", self._adapter.verify_login_response, response)

    # Parsing and deeplink encoding are local and unguarded

    def parse_login_response(self, payload: Any) -> LoginConsentResponse:  # noqa: ANN401
        return self._adapter.parse_login_response(payload)

    def to_deeplink(self, request: LoginConsentRequest) -> str:
        return self._adapter.to_deeplink(request)

    def from_deeplink(self, uri: str) -> LoginConsentRequest:
        return self._adapter.from_deeplink(uri)

    def startup_check(self) -> None:
        self._adapter.startup_check()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # -- internals -----------------------------------------------------------

    def _call(self, name: str, func: Callable[..., T], *args: Any) -> T:  # noqa: ANN401
        self._check_state()
        future = self._executor.submit(func, *args)
        try:
            result = future.result(timeout=self._timeout)
        except FutureTimeout as exc:
            future.cancel()
            err = IdentityError(
                f"Identity adapter call '{name}' timed out after {self._timeout:.1f}s",
                retryable=True,
            )
            self._on_failure(err)
            raise err from exc
        except IdentityError as exc:
            self._on_failure(exc)
            raise
        except Exception as exc:
            err = IdentityError(f"Identity adapter call '{name}' failed: {exc}", retryable=True)
            self._on_failure(err)
            raise err from exc
        self._on_success()
        return result

    def _check_state(self) -> None:
        """Raise immediately if the circuit is open (fail-fast)."""
        with self._lock:
            if self._state == _State.CLOSED:
                return

            if self._state == _State.OPEN:
                elapsed = time.monotonic() - self._last_failure_time
                if elapsed < self._recovery_timeout:
                    msg = (
                        "Identity adapter circuit breaker is open, failing fast "
                        f"(retry in {self._recovery_timeout - elapsed:.0f}s)"
                    )
                    raise IdentityError(msg, retryable=True)
                self._state = _State.HALF_OPEN
                self._trial_in_flight = False
                log.info(
                    "Identity circuit breaker: open -> half_open (recovery timeout %.1fs elapsed)",
                    elapsed,
                )

            if self._trial_in_flight:
                msg = "Identity adapter circuit breaker is half-open, trial call in progress"
                raise IdentityError(msg, retryable=True)
            self._trial_in_flight = True

    def _on_success(self) -> None:
        with self._lock:
            if self._state == _State.HALF_OPEN:
                log.info("Identity circuit breaker: half_open -> closed (trial call succeeded)")
            self._state = _State.CLOSED
            self._failure_count = 0
            self._trial_in_flight = False

    def _on_failure(self, exc: IdentityError) -> None:
        with self._lock:
            if self._state == _State.HALF_OPEN:
                self._state = _State.OPEN
                self._last_failure_time = time.monotonic()
                self._trial_in_flight = False
                log.warning("Identity circuit breaker: half_open -> open (trial call failed: %s)", exc)
                return

            if not exc.retryable:
                return

            self._failure_count += 1
            if self._failure_count >= self._failure_threshold:
                self._state = _State.OPEN
                self._last_failure_time = time.monotonic()
                log.warning(
                    "Identity circuit breaker: closed -> open (threshold %d reached: %s)",
                    self._failure_threshold,
                    exc,
                )
