"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
Builders read a plain dict (already merged from file and environment)
and fill in defaults for anything missing.

Access pattern::

    from loginrelay.config import load_settings

    settings = load_settings("relay.yaml")
    print(settings.server.port, settings.challenges.ttl_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loginrelay.identity.models import IDENTITY_VIEW

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def _as_bool(value: Any) -> bool:  # noqa: ANN401
    """Accept YAML booleans and the string forms env vars produce."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    external_url: str
    bind: str
    port: int
    workers: int
    threads: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int
    cors_origin: str
    proxy_hops: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        external_url=d.get("external_url", ""),
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=int(d.get("port", 8000)),
        workers=int(d.get("workers", 1)),
        threads=int(d.get("threads", 8)),
        worker_class=d.get("worker_class", "gthread"),
        timeout=int(d.get("timeout", 30)),
        graceful_timeout=int(d.get("graceful_timeout", 30)),
        keepalive=int(d.get("keepalive", 2)),
        cors_origin=d.get("cors_origin", "*"),
        proxy_hops=int(d.get("proxy_hops", 0)),
    )


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentitySettings:
    """Signing identity and identity-protocol adapter configuration."""

    backend: str
    private_key: str | None
    signing_id: str
    chain: str
    api_url: str | None
    chain_id: str
    timeout_seconds: float
    requested_permissions: tuple[str, ...]
    deeplink_scheme: str
    circuit_breaker_failure_threshold: int
    circuit_breaker_recovery_timeout: float

    def __repr__(self) -> str:
        # Never render key material
        return (
            f"IdentitySettings(backend={self.backend!r}, signing_id={self.signing_id!r}, "
            f"chain={self.chain!r}, chain_id={self.chain_id!r})"
        )


def _build_identity(data: dict | None) -> IdentitySettings:
    d = data or {}
    return IdentitySettings(
        backend=d.get("backend", "local"),
        private_key=d.get("private_key"),
        signing_id=d.get("signing_id", ""),
        chain=d.get("chain", "VRSC"),
        api_url=d.get("api_url"),
        chain_id=d.get("chain_id", ""),
        timeout_seconds=float(d.get("timeout_seconds", 10)),
        requested_permissions=tuple(d.get("requested_permissions", [IDENTITY_VIEW])),
        deeplink_scheme=d.get("deeplink_scheme", "verus"),
        circuit_breaker_failure_threshold=int(d.get("circuit_breaker_failure_threshold", 5)),
        circuit_breaker_recovery_timeout=float(d.get("circuit_breaker_recovery_timeout", 30)),
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeSettings:
    ttl_seconds: int
    id_length_bytes: int
    gc_interval_seconds: int
    gc_grace_seconds: int
    cleanup_loop_interval_seconds: int


def _build_challenges(data: dict | None) -> ChallengeSettings:
    d = data or {}
    return ChallengeSettings(
        ttl_seconds=int(d.get("ttl_seconds", 300)),
        id_length_bytes=int(d.get("id_length_bytes", 20)),
        gc_interval_seconds=int(d.get("gc_interval_seconds", 60)),
        gc_grace_seconds=int(d.get("gc_grace_seconds", 300)),
        cleanup_loop_interval_seconds=int(d.get("cleanup_loop_interval_seconds", 15)),
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationSettings:
    callback_path: str
    max_failed_attempts: int


def _build_verification(data: dict | None) -> VerificationSettings:
    d = data or {}
    return VerificationSettings(
        callback_path=d.get("callback_path", "/verusidlogin"),
        max_failed_attempts=int(d.get("max_failed_attempts", 5)),
    )


# ---------------------------------------------------------------------------
# Platform (outcome reporting)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlatformSettings:
    """Where and how verified outcomes are forwarded."""

    internal_url: str
    callback_path: str
    timeout_seconds: float
    max_attempts: int
    retry_base_seconds: float
    retry_max_seconds: float
    dead_letter_log: str | None


def _build_platform(data: dict | None) -> PlatformSettings:
    d = data or {}
    return PlatformSettings(
        internal_url=d.get("internal_url", "http://localhost:3000"),
        callback_path=d.get("callback_path", "/auth/qr/callback"),
        timeout_seconds=float(d.get("timeout_seconds", 5)),
        max_attempts=int(d.get("max_attempts", 5)),
        retry_base_seconds=float(d.get("retry_base_seconds", 0.5)),
        retry_max_seconds=float(d.get("retry_max_seconds", 30)),
        dead_letter_log=d.get("dead_letter_log"),
    )


# ---------------------------------------------------------------------------
# QR rendering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QrSettings:
    box_size: int
    border: int
    fill_color: str
    back_color: str


def _build_qr(data: dict | None) -> QrSettings:
    d = data or {}
    return QrSettings(
        box_size=int(d.get("box_size", 10)),
        border=int(d.get("border", 2)),
        fill_color=d.get("fill_color", "#000000"),
        back_color=d.get("back_color", "#ffffff"),
    )


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitRule:
    """Single rate limit rule with request count and time window."""

    requests: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitSettings:
    """Per-client rate limits for the public endpoints."""

    enabled: bool
    login: RateLimitRule
    callback: RateLimitRule
    status: RateLimitRule
    gc_interval_seconds: int


def _build_rate_limit_rule(
    data: dict | None,
    default_req: int,
    default_win: int,
) -> RateLimitRule:
    d = data or {}
    return RateLimitRule(
        requests=int(d.get("requests", default_req)),
        window_seconds=int(d.get("window_seconds", default_win)),
    )


def _build_rate_limits(data: dict | None) -> RateLimitSettings:
    d = data or {}
    return RateLimitSettings(
        enabled=_as_bool(d.get("enabled", True)),
        login=_build_rate_limit_rule(d.get("login"), 30, 60),
        callback=_build_rate_limit_rule(d.get("callback"), 60, 60),
        status=_build_rate_limit_rule(d.get("status"), 600, 60),
        gc_interval_seconds=int(d.get("gc_interval_seconds", 300)),
    )


@dataclass(frozen=True)
class SecuritySettings:
    max_request_body_bytes: int
    rate_limits: RateLimitSettings


def _build_security(data: dict | None) -> SecuritySettings:
    d = data or {}
    return SecuritySettings(
        max_request_body_bytes=int(d.get("max_request_body_bytes", 1_048_576)),
        rate_limits=_build_rate_limits(d.get("rate_limits")),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=str(d.get("level", "INFO")).upper(),
        format=d.get("format", "json"),
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricsSettings:
    enabled: bool
    path: str


def _build_metrics(data: dict | None) -> MetricsSettings:
    d = data or {}
    return MetricsSettings(
        enabled=_as_bool(d.get("enabled", False)),
        path=d.get("path", "/metrics"),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RelaySettings:
    server: ServerSettings
    identity: IdentitySettings
    challenges: ChallengeSettings
    verification: VerificationSettings
    platform: PlatformSettings
    qr: QrSettings
    security: SecuritySettings
    logging: LoggingSettings
    metrics: MetricsSettings


def build_settings(data: dict[str, Any]) -> RelaySettings:
    """Build the full typed settings tree from raw config data.

    Called once at startup after file loading, environment overrides
    and ``${VAR}`` resolution.
    """
    return RelaySettings(
        server=_build_server(data.get("server")),
        identity=_build_identity(data.get("identity")),
        challenges=_build_challenges(data.get("challenges")),
        verification=_build_verification(data.get("verification")),
        platform=_build_platform(data.get("platform")),
        qr=_build_qr(data.get("qr")),
        security=_build_security(data.get("security")),
        logging=_build_logging(data.get("logging")),
        metrics=_build_metrics(data.get("metrics")),
    )
