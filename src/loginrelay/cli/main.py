"""Login relay command-line entry point.

Usage::

    loginrelay                              # serve, configured from the environment
    loginrelay -c relay.yaml
    loginrelay -c relay.yaml --dev
    loginrelay -c relay.yaml --validate-only
    loginrelay keygen
    loginrelay -c relay.yaml selftest
    python -m loginrelay -c relay.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loginrelay.config.settings import RelaySettings

log = logging.getLogger(__name__)


def _get_version() -> str:
    from loginrelay import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loginrelay",
        description="Login relay for self-sovereign identity wallets",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        help="Optional configuration file (YAML or JSON).  Environment variables "
        "override its values.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Start the relay server")
    serve_parser.add_argument("--dev", action="store_true", default=False, dest="dev")

    subparsers.add_parser("keygen", help="Generate a signing key and its identity address")

    selftest_parser = subparsers.add_parser(
        "selftest",
        help="Issue and self-verify one challenge without starting the server",
    )
    selftest_parser.add_argument(
        "--skip-wallet",
        action="store_true",
        default=False,
        help="Do not simulate a wallet response (local backend only).",
    )

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"loginrelay: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "keygen":
        from loginrelay.cli.commands.keygen import run_keygen  # noqa: PLC0415

        run_keygen(args)
        return

    config_path: Path | None = None
    if args.config:
        config_path = Path(args.config)
        if not config_path.is_file():
            _print_error(f"configuration file not found: {config_path}")
            sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from loginrelay.config import ConfigValidationError, load_settings  # noqa: PLC0415

        settings = load_settings(config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from loginrelay.logging import configure_logging  # noqa: PLC0415

    configure_logging(settings.logging)

    if args.validate_only:
        _print_settings_summary(settings)
        sys.exit(0)

    if args.command == "selftest":
        from loginrelay.cli.commands.selftest import run_selftest  # noqa: PLC0415

        sys.exit(run_selftest(settings, args))

    # Default: serve
    from loginrelay.cli.commands.serve import run_serve  # noqa: PLC0415

    _print_settings_summary(settings)
    try:
        run_serve(settings, args)
    except RuntimeError as exc:
        if args.debug:
            raise
        _print_error(str(exc))
        sys.exit(1)


def _print_settings_summary(settings: RelaySettings) -> None:
    """Print a short summary of the loaded configuration."""
    lines = [
        f"loginrelay {_get_version()}",
        f"  external url:   {settings.server.external_url}",
        f"  listen:         {settings.server.bind}:{settings.server.port}",
        f"  signing id:     {settings.identity.signing_id}",
        f"  chain:          {settings.identity.chain} ({settings.identity.chain_id})",
        f"  identity:       {settings.identity.backend}",
        f"  challenge ttl:  {settings.challenges.ttl_seconds}s",
        f"  platform:       {settings.platform.internal_url}{settings.platform.callback_path}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
