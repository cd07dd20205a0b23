"""Selftest subcommand -- exercise issuance without serving.

Issues one challenge through the configured identity adapter (which
self-verifies it), then, for the built-in backend, answers it with a
throwaway wallet identity and runs the response through the verifier.
Nothing is sent to the platform.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from loginrelay.core.errors import RelayError
from loginrelay.identity import IdentityError

if TYPE_CHECKING:
    from loginrelay.config.settings import RelaySettings

log = logging.getLogger(__name__)


def run_selftest(settings: RelaySettings, args: argparse.Namespace) -> int:
    """Return a process exit code: 0 on success, 1 on any failure."""
    from loginrelay.app.context import Container  # noqa: PLC0415

    container = Container(settings)
    try:
        container.identity.startup_check()
        issued = container.issuer.issue()
        sys.stdout.write(f"issued challenge {issued.challenge_id}\n")
        sys.stdout.write(f"  deeplink:  {issued.deeplink}\n")
        sys.stdout.write(f"  expires:   {issued.expires_at.isoformat()}\n")
        sys.stdout.write(f"  qr image:  {'ok' if issued.qr_data_url else 'unavailable'}\n")

        if settings.identity.backend == "local" and not args.skip_wallet:
            _simulate_wallet(container, issued.deeplink)
    except (IdentityError, RelayError) as exc:
        sys.stderr.write(f"selftest failed: {exc}\n")
        return 1
    finally:
        container.stop_workers()

    sys.stdout.write("selftest passed\n")
    return 0


def _simulate_wallet(container, deeplink: str) -> None:
    from loginrelay.identity.local import generate_private_key, sign_login_response  # noqa: PLC0415

    request = container.identity.from_deeplink(deeplink)
    response = sign_login_response(
        request,
        generate_private_key(),
        system_id=container.settings.identity.chain_id,
    )
    result = container.verifier.verify(response.to_dict())
    sys.stdout.write(f"verified wallet response from {result.signing_id}\n")
