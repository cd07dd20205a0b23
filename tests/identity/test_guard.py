"""Unit tests for loginrelay.identity.guard -- timeouts and circuit breaker."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from loginrelay.identity.base import IdentityError
from loginrelay.identity.guard import GuardedIdentityAdapter


def _guard(inner=None, **kwargs) -> GuardedIdentityAdapter:
    inner = inner or MagicMock()
    kwargs.setdefault("timeout_seconds", 1.0)
    return GuardedIdentityAdapter(inner, **kwargs)


class TestPassThrough:
    def test_delegates_and_returns_result(self):
        inner = MagicMock()
        inner.verify_login_request.return_value = True
        guard = _guard(inner)
        assert guard.verify_login_request("req") is True
        inner.verify_login_request.assert_called_once_with("req")
        guard.shutdown()

    def test_false_is_an_answer_not_a_failure(self):
        inner = MagicMock()
        inner.verify_login_response.return_value = False
        guard = _guard(inner, failure_threshold=1)
        for _ in range(3):
            assert guard.verify_login_response("resp") is False
        assert guard.state == "closed"
        guard.shutdown()

    def test_identity_properties_delegate(self):
        inner = MagicMock()
        inner.signing_id = "iService"
        inner.system_id = "iSystem"
        guard = _guard(inner)
        assert guard.signing_id == "iService"
        assert guard.system_id == "iSystem"
        guard.shutdown()


class TestTimeout:
    def test_slow_call_raises_retryable_error(self):
        release = threading.Event()
        inner = MagicMock()
        inner.create_login_request.side_effect = lambda _c: release.wait(5)
        guard = _guard(inner, timeout_seconds=0.05)
        try:
            with pytest.raises(IdentityError, match="timed out") as exc_info:
                guard.create_login_request("challenge")
            assert exc_info.value.retryable
        finally:
            release.set()
            guard.shutdown()


class TestErrorWrapping:
    def test_unexpected_exception_wrapped(self):
        inner = MagicMock()
        inner.verify_login_request.side_effect = RuntimeError("boom")
        guard = _guard(inner)
        with pytest.raises(IdentityError, match="boom"):
            guard.verify_login_request("req")
        guard.shutdown()

    def test_identity_error_propagates_unchanged(self):
        inner = MagicMock()
        err = IdentityError("bad key")
        inner.create_login_request.side_effect = err
        guard = _guard(inner)
        with pytest.raises(IdentityError) as exc_info:
            guard.create_login_request("c")
        assert exc_info.value is err
        guard.shutdown()


class TestCircuitBreaker:
    def _failing(self, threshold=2, recovery=30.0):
        inner = MagicMock()
        inner.verify_login_request.side_effect = IdentityError("down", retryable=True)
        return inner, _guard(inner, failure_threshold=threshold, recovery_timeout=recovery)

    def test_opens_after_threshold(self):
        inner, guard = self._failing()
        for _ in range(2):
            with pytest.raises(IdentityError, match="down"):
                guard.verify_login_request("r")
        assert guard.state == "open"

        with pytest.raises(IdentityError, match="circuit breaker is open"):
            guard.verify_login_request("r")
        assert inner.verify_login_request.call_count == 2
        guard.shutdown()

    def test_non_retryable_errors_do_not_trip(self):
        inner = MagicMock()
        inner.create_login_request.side_effect = IdentityError("config", retryable=False)
        guard = _guard(inner, failure_threshold=1)
        for _ in range(3):
            with pytest.raises(IdentityError):
                guard.create_login_request("c")
        assert guard.state == "closed"
        guard.shutdown()

    def test_half_open_trial_success_closes(self):
        inner, guard = self._failing(threshold=1, recovery=10.0)
        with patch("loginrelay.identity.guard.time.monotonic", return_value=100.0):
            with pytest.raises(IdentityError):
                guard.verify_login_request("r")
        assert guard.state == "open"

        inner.verify_login_request.side_effect = None
        inner.verify_login_request.return_value = True
        with patch("loginrelay.identity.guard.time.monotonic", return_value=111.0):
            assert guard.verify_login_request("r") is True
        assert guard.state == "closed"
        guard.shutdown()

    def test_half_open_trial_failure_reopens(self):
        inner, guard = self._failing(threshold=1, recovery=10.0)
        with patch("loginrelay.identity.guard.time.monotonic", return_value=100.0):
            with pytest.raises(IdentityError):
                guard.verify_login_request("r")
        with patch("loginrelay.identity.guard.time.monotonic", return_value=111.0):
            with pytest.raises(IdentityError, match="down"):
                guard.verify_login_request("r")
        assert guard.state == "open"
        guard.shutdown()


class TestUnguardedHelpers:
    def test_parse_and_deeplinks_delegate(self):
        inner = MagicMock()
        guard = _guard(inner)
        guard.parse_login_response({"x": 1})
        guard.to_deeplink("req")
        guard.from_deeplink("verus://1/...")
        guard.startup_check()
        inner.parse_login_response.assert_called_once_with({"x": 1})
        inner.to_deeplink.assert_called_once_with("req")
        inner.from_deeplink.assert_called_once_with("verus://1/...")
        inner.startup_check.assert_called_once()
        guard.shutdown()
