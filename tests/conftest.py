"""
Shared test fixtures.

Provides:
  • a temporary SQLite store (``store``), optionally with the Wednesday
    dinner window already in place (``dinner_store``)
  • a committer wired to a frozen clock and a notifier spy
  • a FastAPI TestClient running the full lifespan against a temp database,
    with the default schedule seeded and emails kept on the console

The `client` fixture runs the full lifespan (DB open / close) so that the
booking endpoints work exactly as they do when served.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.db import ReservationStore
from app.main import app
from app.services.booking import BookingCommitter
from app.services.locks import KeyedLock
from tests.mocks.models import BOOKING_WINDOW, NOW, PARIS, frozen, make_window
from tests.mocks.services import NotifierSpy


# ── Store ──────────────────────────────────────────────────────────────────


@pytest.fixture()
async def store(tmp_path):
    db = await ReservationStore.open(str(tmp_path / "test.db"))
    yield db
    await db.close()


@pytest.fixture()
async def dinner_store(store):
    """Store holding a single 10-cover dinner window on Wednesdays."""
    await store.upsert_service_window(make_window())
    return store


# ── Committer ──────────────────────────────────────────────────────────────


@pytest.fixture()
def notifier_spy() -> NotifierSpy:
    return NotifierSpy()


@pytest.fixture()
def committer(dinner_store, notifier_spy) -> BookingCommitter:
    return BookingCommitter(
        dinner_store,
        notifier_spy,
        tz=PARIS,
        booking_window=BOOKING_WINDOW,
        locks=KeyedLock(timeout=5),
        clock=frozen(NOW),
    )


# ── App ────────────────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path):
    """
    Internal fixture that points the app lifespan at a temp database and
    keeps confirmation emails off the network.
    """
    monkeypatch.setattr("app.main.DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setattr("app.main.SEED_DEFAULT_SCHEDULE", True)
    monkeypatch.setattr("app.services.email.smtp_enabled", lambda: False)

    # ── Disable rate limiting in tests ────────────────────────────────
    from app.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def client(_test_env) -> TestClient:
    """
    FastAPI TestClient with a temp DB and the default schedule.

    Uses a context manager so the lifespan runs (DB open/close).
    """
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()
