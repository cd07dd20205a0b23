"""Challenge status endpoint.

``GET /status/<challenge_id>`` -- polled by the platform.  Pending
challenges past their TTL are reported as ``expired``.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from loginrelay.api.serializers import serialize_status
from loginrelay.app.context import get_container

status_bp = Blueprint("status", __name__)


@status_bp.route("/<challenge_id>", methods=["GET"])
def get_status(challenge_id: str):
    """GET /status/<id> -- current challenge state."""
    g.challenge_id = challenge_id
    challenge = get_container().status.lookup(challenge_id)
    response = jsonify({"data": serialize_status(challenge)})
    response.headers["Cache-Control"] = "no-store"
    return response
