"""Challenge issuance endpoint.

``POST /login`` -- issue a signed login challenge and return its
deeplink, QR image and expiry.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from loginrelay.api.serializers import serialize_issued
from loginrelay.app.context import get_container

login_bp = Blueprint("login", __name__)


@login_bp.route("", methods=["POST"])
def create_login_challenge():
    """POST /login -- issue a new challenge."""
    issued = get_container().issuer.issue()
    g.challenge_id = issued.challenge_id
    response = jsonify({"data": serialize_issued(issued)})
    response.headers["Cache-Control"] = "no-store"
    return response
