"""Configuration loader for the login relay.

Sources, lowest to highest precedence:

1. defaults in :mod:`loginrelay.config.settings`;
2. an optional YAML or JSON file, whose string values may reference the
   environment as ``${VAR}`` or ``${VAR:-default}``;
3. the relay's well-known environment variables (``PRIVATE_KEY``,
   ``SIGNING_IADDRESS``, ``LOGIN_PORT``, ...).

There is no process-wide singleton: callers build a
:class:`RelaySettings` once and pass it to whatever needs it.

Usage::

    from loginrelay.config import load_settings

    settings = load_settings("/etc/loginrelay/relay.yaml")
    settings = load_settings(environ={"PRIVATE_KEY": "...", ...})
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from loginrelay.config.settings import RelaySettings, build_settings

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

# Environment variable → dotted settings path
ENV_OVERRIDES: dict[str, str] = {
    "PRIVATE_KEY": "identity.private_key",
    "SIGNING_IADDRESS": "identity.signing_id",
    "CHAIN": "identity.chain",
    "API": "identity.api_url",
    "CHAIN_IADDRESS": "identity.chain_id",
    "SERVER_URL": "server.external_url",
    "PLATFORM_INTERNAL_URL": "platform.internal_url",
    "LOGIN_PORT": "server.port",
    "CHALLENGE_TTL_SECONDS": "challenges.ttl_seconds",
    "LOG_LEVEL": "logging.level",
}

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_VALID_LOG_FORMATS = frozenset({"json", "text"})
_PRIVATE_KEY_HEX_LENGTH = 64
_MIN_ID_LENGTH_BYTES = 16


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str, environ: Mapping[str, str]) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    environ: Mapping[str, str],
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path, environ)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], environ, child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path, environ)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, environ, child_path)


def _apply_env_overrides(data: dict, environ: Mapping[str, str]) -> None:
    """Write well-known environment variables into *data* in-place."""
    for var_name, dotted in ENV_OVERRIDES.items():
        value = environ.get(var_name)
        if value is None or value == "":
            continue
        section, _, key = dotted.partition(".")
        target = data.get(section)
        if not isinstance(target, dict):
            target = {}
            data[section] = target
        target[key] = value


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def read_config_file(config_file: str | Path) -> dict:
    """Read a YAML or JSON configuration file into a dict."""
    path = Path(config_file)
    try:
        with path.open(encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as exc:
        msg = f"Cannot read configuration file {path}: {exc}"
        raise ConfigValidationError([msg]) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Configuration file {path} must contain a mapping at the top level"
        raise ConfigValidationError([msg])
    return data


# ---------------------------------------------------------------------------
# Cross-field validation
# ---------------------------------------------------------------------------


def validate_settings(settings: RelaySettings) -> list[str]:  # noqa: C901, PLR0912
    """Semantic & cross-field validation.

    Raises :class:`ConfigValidationError` listing every problem found.
    Returns the list of non-fatal warnings, which are also logged.
    """
    errors: list[str] = []
    warnings: list[str] = []

    # -- server --
    server = settings.server
    ext_url = server.external_url
    if not ext_url:
        errors.append("server.external_url is required (or set SERVER_URL)")
    elif not ext_url.startswith(("http://", "https://")):
        errors.append(f"server.external_url must be an http(s) URL (got '{ext_url}')")
    elif ext_url.endswith("/"):
        errors.append(f"server.external_url must not end with '/' (got '{ext_url}')")
    elif ext_url.startswith("http://"):
        warnings.append(
            "server.external_url is plain http; wallets will post signed responses unencrypted",
        )
    if server.workers != 1:
        errors.append(
            f"server.workers must be 1 (got {server.workers}); challenges live in "
            "process memory, scale with server.threads instead",
        )
    if server.threads < 1:
        errors.append("server.threads must be at least 1")

    # -- identity --
    identity = settings.identity
    if identity.backend == "local":
        key = (identity.private_key or "").strip()
        if not key:
            errors.append("identity.private_key is required (or set PRIVATE_KEY)")
        elif len(key) != _PRIVATE_KEY_HEX_LENGTH or not _is_hex(key):
            errors.append(
                f"identity.private_key must be {_PRIVATE_KEY_HEX_LENGTH} hex characters",
            )
    elif not identity.backend.startswith("ext:"):
        errors.append(
            f"identity.backend '{identity.backend}' is unknown; use 'local' or "
            "'ext:package.module.ClassName'",
        )
    if not identity.signing_id:
        errors.append("identity.signing_id is required (or set SIGNING_IADDRESS)")
    if not identity.chain_id:
        errors.append("identity.chain_id is required (or set CHAIN_IADDRESS)")
    if identity.timeout_seconds <= 0:
        errors.append("identity.timeout_seconds must be positive")
    if not identity.requested_permissions:
        errors.append("identity.requested_permissions must not be empty")

    # -- challenges --
    challenges = settings.challenges
    if challenges.ttl_seconds <= 0:
        errors.append("challenges.ttl_seconds must be positive")
    if challenges.id_length_bytes < _MIN_ID_LENGTH_BYTES:
        errors.append(
            f"challenges.id_length_bytes must be at least {_MIN_ID_LENGTH_BYTES} "
            f"(got {challenges.id_length_bytes})",
        )
    if challenges.gc_grace_seconds < 0:
        errors.append("challenges.gc_grace_seconds must not be negative")
    if challenges.gc_interval_seconds <= 0:
        errors.append("challenges.gc_interval_seconds must be positive")

    # -- verification --
    verification = settings.verification
    if not verification.callback_path.startswith("/"):
        errors.append(
            f"verification.callback_path must start with '/' (got '{verification.callback_path}')",
        )
    if verification.max_failed_attempts < 0:
        errors.append("verification.max_failed_attempts must not be negative")
    elif verification.max_failed_attempts == 0:
        warnings.append(
            "verification.max_failed_attempts is 0; invalid signatures never fail a challenge",
        )

    # -- platform --
    platform = settings.platform
    if not platform.internal_url.startswith(("http://", "https://")):
        errors.append(
            f"platform.internal_url must be an http(s) URL (got '{platform.internal_url}')",
        )
    if platform.max_attempts < 1:
        errors.append("platform.max_attempts must be at least 1")
    if platform.timeout_seconds <= 0:
        errors.append("platform.timeout_seconds must be positive")

    # -- logging --
    if settings.logging.level not in _VALID_LOG_LEVELS:
        errors.append(
            f"logging.level must be one of {sorted(_VALID_LOG_LEVELS)} "
            f"(got '{settings.logging.level}')",
        )
    if settings.logging.format not in _VALID_LOG_FORMATS:
        errors.append(
            f"logging.format must be one of {sorted(_VALID_LOG_FORMATS)} "
            f"(got '{settings.logging.format}')",
        )

    for w in warnings:
        log.warning("Config warning: %s", w)

    if errors:
        raise ConfigValidationError(errors)
    return warnings


def _is_hex(value: str) -> bool:
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def load_settings(
    config_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    validate: bool = True,
) -> RelaySettings:
    """Load, resolve, build and validate the relay settings.

    Parameters
    ----------
    config_file:
        Optional YAML/JSON file.  Without one, settings come from
        defaults and the environment only.
    environ:
        Environment mapping; :data:`os.environ` when ``None``.
    validate:
        Run :func:`validate_settings` on the result.

    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = read_config_file(config_file) if config_file else {}

    _resolve_env_vars(data, env)
    _apply_env_overrides(data, env)

    try:
        settings = build_settings(data)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid configuration value: {exc}"
        raise ConfigValidationError([msg]) from exc

    if validate:
        validate_settings(settings)
    return settings
