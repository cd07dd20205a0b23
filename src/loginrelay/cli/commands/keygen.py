"""Keygen subcommand -- create a signing key for the built-in backend."""

from __future__ import annotations

import argparse
import sys


def run_keygen(args: argparse.Namespace) -> None:
    """Print a fresh private key and the identity address it controls."""
    from loginrelay.identity.local import (  # noqa: PLC0415
        generate_private_key,
        identity_from_private_key,
    )

    key = generate_private_key()
    sys.stdout.write(f"PRIVATE_KEY={key}\n")
    sys.stdout.write(f"SIGNING_IADDRESS={identity_from_private_key(key)}\n")
