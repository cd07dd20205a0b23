"""End-to-end login flow through the HTTP API."""

from __future__ import annotations

from datetime import datetime

from loginrelay.identity.local import generate_private_key, identity_from_private_key


def _login(client) -> dict:
    resp = client.post("/login")
    assert resp.status_code == 200
    return resp.get_json()["data"]


class TestLogin:
    def test_issue_challenge(self, client, settings):
        resp = client.post("/login")
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        data = resp.get_json()["data"]
        assert data["challengeId"].startswith("i")
        assert data["deeplink"].startswith("verus://1/login-consent-request/")
        assert data["qrDataUrl"].startswith("data:image/png;base64,")
        assert data["expiresAt"].endswith("Z")

    def test_expiry_is_ttl_after_issue(self, client, settings):
        data = _login(client)
        status = client.get(f"/status/{data['challengeId']}").get_json()["data"]
        expires = datetime.fromisoformat(data["expiresAt"].replace("Z", "+00:00"))
        created_ms = status["createdAt"]
        ttl_ms = settings.challenges.ttl_seconds * 1000
        assert abs(expires.timestamp() * 1000 - created_ms - ttl_ms) < 1000

    def test_get_not_allowed(self, client):
        resp = client.get("/login")
        assert resp.status_code == 405
        assert resp.get_json()["code"] == "method_not_allowed"


class TestCallback:
    def test_full_flow(self, client, container, platform_client, wallet_sign, wallet_key):
        data = _login(client)
        cid = data["challengeId"]
        assert client.get(f"/status/{cid}").get_json()["data"]["status"] == "pending"

        resp = client.post("/verusidlogin", json=wallet_sign(data["deeplink"]))
        assert resp.status_code == 200
        assert resp.get_json() is True

        status = client.get(f"/status/{cid}").get_json()["data"]
        assert status["status"] == "verified"
        assert status["signingId"] == identity_from_private_key(wallet_key)

        assert container.reporter.pending_count == 1
        container.reporter.run_pending()
        platform_client.notify_verified.assert_called_once_with(
            cid, identity_from_private_key(wallet_key)
        )

    def test_duplicate_response_acknowledged_once(
        self, client, container, platform_client, wallet_sign
    ):
        data = _login(client)
        payload = wallet_sign(data["deeplink"])
        assert client.post("/verusidlogin", json=payload).get_json() is True
        assert client.post("/verusidlogin", json=payload).get_json() is True
        container.reporter.run_pending()
        assert platform_client.notify_verified.call_count == 1

    def test_second_identity_rejected(self, client, wallet_sign):
        data = _login(client)
        client.post("/verusidlogin", json=wallet_sign(data["deeplink"]))
        resp = client.post(
            "/verusidlogin",
            json=wallet_sign(data["deeplink"], key=generate_private_key()),
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "challenge_expired_or_unknown"

    def test_expired_challenge(self, client, live_clock, wallet_sign, settings):
        data = _login(client)
        live_clock.advance(settings.challenges.ttl_seconds + 1)
        resp = client.post("/verusidlogin", json=wallet_sign(data["deeplink"]))
        assert resp.status_code == 400
        assert resp.get_json() == {
            "error": "Challenge expired or unknown",
            "code": "challenge_expired_or_unknown",
        }
        status = client.get(f"/status/{data['challengeId']}").get_json()["data"]
        assert status["status"] == "expired"
        assert "signingId" not in status

    def test_tampered_signature(self, client, wallet_sign):
        data = _login(client)
        payload = wallet_sign(data["deeplink"])
        payload["decision"]["created_at"] += 1
        resp = client.post("/verusidlogin", json=payload)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "signature_invalid"
        status = client.get(f"/status/{data['challengeId']}").get_json()["data"]
        assert status["status"] == "pending"

    def test_malformed_body(self, client):
        resp = client.post("/verusidlogin", data="not json", content_type="text/plain")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "malformed_response"

    def test_malformed_json(self, client):
        resp = client.post("/verusidlogin", json={"hello": "world"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "malformed_response"


class TestStatus:
    def test_unknown_id(self, client):
        resp = client.get("/status/iUnknown")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not found", "code": "not_found"}
        assert resp.headers["Cache-Control"] == "no-store"

    def test_swept_challenge_is_gone(self, client, container, live_clock, settings):
        data = _login(client)
        live_clock.advance(
            settings.challenges.ttl_seconds + settings.challenges.gc_grace_seconds + 1
        )
        container.store.sweep()
        assert client.get(f"/status/{data['challengeId']}").status_code == 404
