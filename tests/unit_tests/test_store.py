"""Tests for the SQLite reservation store."""

import sqlite3
from datetime import date, time, timedelta

import pytest

from app.db import DEFAULT_SCHEDULE
from tests.mocks.models import NOW, WEDNESDAY, at, make_lunch, make_window


async def _insert(store, code="ABC234", start="19:00", party_size=2, service="soir", email=None):
    start_at = at(WEDNESDAY, start)
    return await store.insert_booking(
        confirmation_code=code,
        service_name=service,
        start_at=start_at,
        end_at=start_at + timedelta(minutes=60),
        party_size=party_size,
        name="Camille",
        phone="0612345678",
        email=email,
    )


class TestSchedule:
    @pytest.mark.asyncio
    async def test_seed_default_schedule_once(self, store):
        assert await store.seed_default_schedule() == len(DEFAULT_SCHEDULE) == 8
        assert await store.seed_default_schedule() == 0

    @pytest.mark.asyncio
    async def test_default_schedule_shape(self, store):
        await store.seed_default_schedule()

        wednesday = await store.get_active_windows(3)
        assert [w.name for w in wednesday] == ["midi", "soir"]
        assert wednesday[0].last_booking_time == time(13, 30)
        assert wednesday[1].last_booking_time == time(21, 30)
        assert all(w.capacity == 100 for w in wednesday)

        assert [w.name for w in await store.get_active_windows(2)] == ["soir"]
        assert await store.get_active_windows(0) == []
        assert await store.get_active_windows(1) == []

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_window(self, store):
        await store.upsert_service_window(make_window())
        await store.upsert_service_window(make_window(capacity=40, display_name="Dinner"))

        windows = await store.list_windows()
        assert len(windows) == 1
        assert windows[0].capacity == 40
        assert windows[0].display_name == "Dinner"

    @pytest.mark.asyncio
    async def test_get_active_window(self, store):
        await store.upsert_service_window(make_window())
        await store.upsert_service_window(make_lunch())

        assert (await store.get_active_window("midi", 3)).start_time == time(12, 0)
        assert await store.get_active_window("midi", 4) is None
        assert await store.get_active_window("brunch", 3) is None

    @pytest.mark.asyncio
    async def test_deactivate_window(self, store):
        await store.upsert_service_window(make_window())

        assert await store.set_window_active("soir", 3, False) is True
        assert await store.get_active_window("soir", 3) is None
        assert await store.get_active_windows(3) == []
        assert len(await store.list_windows()) == 1

        assert await store.set_window_active("soir", 5, False) is False


class TestClosures:
    @pytest.mark.asyncio
    async def test_add_and_remove(self, store):
        await store.add_closure(WEDNESDAY, "Private event")

        assert await store.is_closed(WEDNESDAY)
        assert (await store.get_closure(WEDNESDAY)).reason == "Private event"
        assert not await store.is_closed(WEDNESDAY + timedelta(days=1))

        assert await store.remove_closure(WEDNESDAY) is True
        assert await store.remove_closure(WEDNESDAY) is False
        assert not await store.is_closed(WEDNESDAY)

    @pytest.mark.asyncio
    async def test_reclosing_updates_reason(self, store):
        await store.add_closure(WEDNESDAY, "Private event")
        await store.add_closure(WEDNESDAY, "Kitchen works")

        closures = await store.list_closures()
        assert len(closures) == 1
        assert closures[0].reason == "Kitchen works"

    @pytest.mark.asyncio
    async def test_list_from_date(self, store):
        for day in (date(2026, 1, 1), date(2026, 3, 4), date(2026, 12, 25)):
            await store.add_closure(day)

        upcoming = await store.list_closures(date_from=date(2026, 3, 1))
        assert [c.date for c in upcoming] == [date(2026, 3, 4), date(2026, 12, 25)]


class TestBookingLedger:
    @pytest.mark.asyncio
    async def test_insert_and_fetch(self, store):
        booking = await _insert(store, email="camille@example.com")

        assert booking.status == "confirmed"
        assert booking.start_at == at(WEDNESDAY, "19:00")
        assert await store.get_booking(str(booking.id)) == booking
        assert await store.get_booking_by_code("abc234") == booking
        assert await store.confirmation_code_exists("ABC234")
        assert not await store.confirmation_code_exists("ZZZZZZ")

    @pytest.mark.asyncio
    async def test_duplicate_code_rejected(self, store):
        await _insert(store)
        with pytest.raises(sqlite3.IntegrityError):
            await _insert(store)

    @pytest.mark.asyncio
    async def test_sum_uses_half_open_overlap(self, store):
        await _insert(store, code="AAAAAA", start="19:00", party_size=4)
        await _insert(store, code="BBBBBB", start="20:00", party_size=3)
        await _insert(store, code="CCCCCC", start="19:30", party_size=5, service="midi")

        assert await store.sum_overlapping_party_size(
            "soir", at(WEDNESDAY, "19:30"), at(WEDNESDAY, "20:30")
        ) == 7
        assert await store.sum_overlapping_party_size(
            "soir", at(WEDNESDAY, "20:00"), at(WEDNESDAY, "21:00")
        ) == 3
        assert await store.sum_overlapping_party_size(
            "soir", at(WEDNESDAY, "21:00"), at(WEDNESDAY, "22:00")
        ) == 0

    @pytest.mark.asyncio
    async def test_cancelled_bookings_leave_capacity(self, store):
        await _insert(store, party_size=4)

        updated = await store.update_booking_status("abc234", "cancelled")

        assert updated.status == "cancelled"
        assert await store.sum_overlapping_party_size(
            "soir", at(WEDNESDAY, "19:00"), at(WEDNESDAY, "20:00")
        ) == 0
        assert await store.list_confirmed_bookings(
            at(WEDNESDAY, "00:00"), at(WEDNESDAY, "23:59")
        ) == []

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, store):
        await _insert(store)
        with pytest.raises(sqlite3.IntegrityError):
            await store.update_booking_status("ABC234", "lost")

    @pytest.mark.asyncio
    async def test_list_confirmed_bookings_by_overlap(self, store):
        await _insert(store, code="AAAAAA", start="12:00", service="midi")
        await _insert(store, code="BBBBBB", start="19:00")

        evening = await store.list_confirmed_bookings(at(WEDNESDAY, "18:00"), at(WEDNESDAY, "23:00"))
        assert [b.confirmation_code for b in evening] == ["BBBBBB"]


class TestNotificationLog:
    @pytest.mark.asyncio
    async def test_logs_are_listed_by_attempt(self, store):
        booking = await _insert(store, email="camille@example.com")
        await store.create_notification_log(booking.id, attempt=1, status="failed", error_message="down")
        await store.create_notification_log(booking.id, attempt=2, status="sent")

        logs = await store.list_notification_logs(booking.id)
        assert [(log.attempt, log.status) for log in logs] == [(1, "failed"), (2, "sent")]
        assert logs[0].error_message == "down"
        assert logs[0].channel == "email"

    @pytest.mark.asyncio
    async def test_retryable_only_after_failed_last_attempt(self, store):
        failed = await _insert(store, code="AAAAAA", email="a@example.com")
        recovered = await _insert(store, code="BBBBBB", email="b@example.com")
        exhausted = await _insert(store, code="CCCCCC", email="c@example.com")

        await store.create_notification_log(failed.id, attempt=1, status="failed")
        await store.create_notification_log(recovered.id, attempt=1, status="failed")
        await store.create_notification_log(recovered.id, attempt=2, status="sent")
        for attempt in (1, 2, 3):
            await store.create_notification_log(exhausted.id, attempt=attempt, status="failed")

        retryable = await store.list_retryable_notifications(NOW, max_attempts=3)

        assert [(b.confirmation_code, n) for b, n in retryable] == [("AAAAAA", 1)]

    @pytest.mark.asyncio
    async def test_past_bookings_not_retried(self, store):
        booking = await _insert(store, email="a@example.com")
        await store.create_notification_log(booking.id, attempt=1, status="failed")

        assert await store.list_retryable_notifications(
            at(WEDNESDAY, "20:00"), max_attempts=3
        ) == []


@pytest.mark.asyncio
async def test_ping(store):
    assert await store.ping() is True
