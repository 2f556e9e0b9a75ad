"""Tests for rate limiting behaviour."""

import pytest
from fastapi.testclient import TestClient

from app.main import app


class TestRateLimiting:
    """Verify that rate limiting kicks in for booking submissions."""

    @pytest.fixture()
    def limited_client(self, _test_env):
        """
        TestClient with rate limiting **enabled** (unlike the default
        `client` fixture which disables it for convenience).
        """
        from app.rate_limit import limiter

        limiter.enabled = True
        # Reset in-memory state so previous tests don't pollute counts
        limiter.reset()

        with TestClient(app, raise_server_exceptions=False) as tc:
            yield tc

        limiter.enabled = False

    def test_booking_rate_limit(self, limited_client):
        """POST /api/bookings is limited to 10 requests/minute."""
        for i in range(10):
            resp = limited_client.post("/api/bookings", json={})
            # 400 (empty booking) is fine – we just need it not to be 429 yet
            assert resp.status_code == 400, f"Request {i + 1} should not be rate-limited"

        resp = limited_client.post("/api/bookings", json={})
        assert resp.status_code == 429
        assert "Rate limit exceeded" in resp.text

    def test_availability_not_limited_at_low_volume(self, limited_client):
        for _ in range(15):
            resp = limited_client.get("/api/availability?date=2001-01-01&party_size=2")
            assert resp.status_code == 400
