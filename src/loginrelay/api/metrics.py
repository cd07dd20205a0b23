"""Prometheus-compatible metrics endpoint.

``GET /metrics`` returns the in-process counters in text format.
"""

from __future__ import annotations

from flask import Blueprint, make_response

from loginrelay.app.context import get_container

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("", methods=["GET"])
def get_metrics():
    """Return metrics in Prometheus text exposition format."""
    container = get_container()
    container.metrics_collector.set_gauge("loginrelay_challenges_stored", len(container.store))
    container.metrics_collector.set_gauge(
        "loginrelay_reports_pending",
        container.reporter.pending_count,
    )

    response = make_response(container.metrics_collector.export())
    response.headers["Content-Type"] = "text/plain; version=0.0.4; charset=utf-8"
    return response
