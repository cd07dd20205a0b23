"""Root conftest for the login relay test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

CHAIN_ID = "iJhCezBExJHvtyH3fGhNnt2NhU4Ztkf2yq"


class FakeClock:
    """Settable UTC clock for stores and services."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeMonotonic:
    """Settable monotonic clock for the reporter and rate limiter."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Keys and config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def signing_key() -> str:
    """The relay's own private key (hex seed)."""
    from loginrelay.identity.local import generate_private_key

    return generate_private_key()


@pytest.fixture(scope="session")
def wallet_key() -> str:
    """A wallet identity's private key, distinct from the relay's."""
    from loginrelay.identity.local import generate_private_key

    return generate_private_key()


@pytest.fixture()
def chain_id() -> str:
    return CHAIN_ID


@pytest.fixture()
def config_data(signing_key: str) -> dict:
    """Return a dict containing a complete, valid relay configuration."""
    from loginrelay.identity.local import identity_from_private_key

    return {
        "server": {"external_url": "https://login.example.com"},
        "identity": {
            "private_key": signing_key,
            "signing_id": identity_from_private_key(signing_key),
            "chain_id": CHAIN_ID,
            "timeout_seconds": 5,
        },
        "platform": {
            "internal_url": "http://platform.internal:3000",
            "max_attempts": 3,
            "retry_base_seconds": 1,
            "retry_max_seconds": 4,
        },
    }


@pytest.fixture()
def settings(config_data: dict):
    """Built (unvalidated) :class:`RelaySettings` for *config_data*."""
    from loginrelay.config.settings import build_settings

    return build_settings(config_data)


@pytest.fixture()
def tmp_config_file(tmp_path: Path, config_data: dict) -> Path:
    """Write *config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "relay.yaml"
    cfg.write_text(
        yaml.safe_dump(config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture()
def adapter(settings):
    """The built-in Ed25519 adapter for the relay's identity."""
    from loginrelay.identity.local import Ed25519IdentityAdapter

    return Ed25519IdentityAdapter(settings.identity)


@pytest.fixture()
def store(clock: FakeClock):
    from loginrelay.store.memory import InMemoryChallengeStore

    return InMemoryChallengeStore(grace_seconds=300, clock=clock)


# ---------------------------------------------------------------------------
# HTTP-level fixtures: a relay app wired to a fake platform
# ---------------------------------------------------------------------------


@pytest.fixture()
def live_clock(clock: FakeClock) -> FakeClock:
    """Settable clock starting at the real current time.

    The issuer stamps challenges with the wall clock, so the store's
    clock has to start there for expiry to be controllable.
    """
    clock.now = datetime.now(UTC)
    return clock


@pytest.fixture()
def platform_client():
    from unittest.mock import MagicMock

    client = MagicMock()
    client.url = "http://platform.internal:3000/auth/qr/callback"
    client.notify_verified.return_value = 200
    return client


@pytest.fixture()
def container(settings, live_clock, platform_client):
    from loginrelay.app.context import Container
    from loginrelay.store.memory import InMemoryChallengeStore

    c = Container(
        settings,
        store=InMemoryChallengeStore(grace_seconds=300, clock=live_clock),
        platform_client=platform_client,
    )
    yield c
    c.stop_workers()


@pytest.fixture()
def app(settings, container):
    from loginrelay.app import create_app

    application = create_app(settings, container, start_workers=False)
    application.config["TESTING"] = True
    return application


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def wallet_sign(wallet_key: str, chain_id: str):
    """Answer a deeplink the way a wallet would; returns the JSON payload."""
    from loginrelay.identity.local import sign_login_response
    from loginrelay.identity.models import LoginConsentRequest

    def _sign(deeplink: str, key: str | None = None) -> dict:
        request = LoginConsentRequest.from_deeplink(deeplink)
        return sign_login_response(request, key or wallet_key, system_id=chain_id).to_dict()

    return _sign


# ---------------------------------------------------------------------------
# Logging isolation -- configure_logging() detaches the loginrelay tree
# from the root logger, which would hide records from caplog
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_relay_logging():
    import logging

    yield
    root = logging.getLogger("loginrelay")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
