"""Tests for the /api/health endpoint and app wiring."""

from datetime import datetime

from app.routers.health import API_VERSION


def test_health_reports_version_and_utc_time(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200

    data = resp.json()
    assert data["status"] == "ok"
    assert data["version"] == API_VERSION
    assert datetime.fromisoformat(data["timestamp"]).utcoffset().total_seconds() == 0


def test_lifespan_seeds_default_schedule(client):
    windows = client.portal.call(client.app.state.store.list_windows)
    assert {w.name for w in windows} == {"midi", "soir"}


def test_cors_preflight_allows_local_site(client):
    resp = client.options(
        "/api/bookings",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_health_degraded_when_store_closed(client):
    client.portal.call(client.app.state.store.close)

    resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
