"""Wallet callback endpoint.

``POST <verification.callback_path>`` -- receives a signed
login-consent response from the wallet.  Answers ``true`` once the
challenge is verified (including idempotent retries by the same
identity); every other outcome is a JSON error.

The blueprint is built per application because its mount point is
configurable.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, g, jsonify, request

from loginrelay.app.context import get_container


def _claimed_challenge_id(payload: Any) -> str | None:  # noqa: ANN401
    """The challenge id the payload says it answers, unverified."""
    try:
        claimed = payload["decision"]["request"]["challenge"]["challenge_id"]
    except (KeyError, TypeError):
        return None
    return claimed if isinstance(claimed, str) else None


def create_callback_blueprint() -> Blueprint:
    bp = Blueprint("callback", __name__)

    @bp.route("", methods=["POST"])
    def receive_login_response():
        payload = request.get_json(silent=True)
        g.challenge_id = _claimed_challenge_id(payload)
        get_container().verifier.verify(payload, client_ip=request.remote_addr)
        return jsonify(True)

    return bp
