"""Configuration subsystem for the login relay.

Public API::

    from loginrelay.config import load_settings

    settings = load_settings(config_file="relay.yaml")
    port = settings.server.port
"""

from loginrelay.config.relay_config import (
    ConfigValidationError,
    load_settings,
    validate_settings,
)
from loginrelay.config.settings import (
    ChallengeSettings,
    IdentitySettings,
    LoggingSettings,
    MetricsSettings,
    PlatformSettings,
    QrSettings,
    RateLimitRule,
    RateLimitSettings,
    RelaySettings,
    SecuritySettings,
    ServerSettings,
    VerificationSettings,
    build_settings,
)

__all__ = [
    "ChallengeSettings",
    "ConfigValidationError",
    "IdentitySettings",
    "LoggingSettings",
    "MetricsSettings",
    "PlatformSettings",
    "QrSettings",
    "RateLimitRule",
    "RateLimitSettings",
    "RelaySettings",
    "SecuritySettings",
    "ServerSettings",
    "VerificationSettings",
    "build_settings",
    "load_settings",
    "validate_settings",
]
