"""Unit tests for loginrelay.metrics.collector."""

from __future__ import annotations

import threading

from loginrelay.metrics.collector import MetricsCollector


class TestMetricsCollector:
    def test_counters_with_labels(self):
        m = MetricsCollector()
        m.increment("loginrelay_verifications_total", labels={"outcome": "verified"})
        m.increment("loginrelay_verifications_total", labels={"outcome": "verified"})
        m.increment("loginrelay_verifications_total", labels={"outcome": "malformed"})
        assert m.get("loginrelay_verifications_total", labels={"outcome": "verified"}) == 2
        assert m.get("loginrelay_verifications_total", labels={"outcome": "malformed"}) == 1
        assert m.get("loginrelay_verifications_total") == 0

    def test_export_prometheus_text(self):
        m = MetricsCollector()
        m.increment("loginrelay_challenges_issued_total", amount=3)
        m.increment("loginrelay_reports_total", labels={"outcome": "delivered"})
        m.set_gauge("loginrelay_challenges_stored", 7)
        text = m.export()
        assert "# TYPE loginrelay_uptime_seconds gauge" in text
        assert "# TYPE loginrelay_challenges_issued_total counter" in text
        assert "loginrelay_challenges_issued_total 3" in text
        assert 'loginrelay_reports_total{outcome="delivered"} 1' in text
        assert "loginrelay_challenges_stored 7" in text
        assert text.endswith("\n")

    def test_thread_safe_increments(self):
        m = MetricsCollector()

        def _bump():
            for _ in range(1000):
                m.increment("loginrelay_http_requests_total")

        threads = [threading.Thread(target=_bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert m.get("loginrelay_http_requests_total") == 8000
