"""Health check and app-level middleware."""

import json


class TestHealth:
    async def test_health_check(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"
        assert data["rate_limit_storage"] == "ok"
        assert "Allowance" in data["app"]

    async def test_oversized_body_rejected(self, client):
        resp = await client.post(
            "/api/v1/auth/sign-in",
            content=b"{}",
            headers={"Content-Type": "application/json", "Content-Length": str(2 * 1024 * 1024)},
        )
        assert resp.status_code == 413


class TestErrorHandler:
    async def test_allowance_error_keeps_status_and_code(self):
        from allowance.core.errors import ConfigurationMissing
        from allowance.main import allowance_error_handler

        resp = await allowance_error_handler(None, ConfigurationMissing("No settings for family"))
        assert resp.status_code == ConfigurationMissing.status_code
        assert json.loads(resp.body) == {
            "detail": "No settings for family",
            "code": ConfigurationMissing.code,
        }
