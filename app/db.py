"""
SQLite storage layer using aiosqlite.

Holds the service schedule (windows and closures), the booking ledger and
the confirmation delivery log. Tables are created automatically on open.

The store is an explicit object: the app lifespan opens one and hands it to
the services that need it, tests open their own against a temp file.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from pathlib import Path
from uuid import UUID, uuid4

import aiosqlite

from app.models import Booking, Closure, NotificationLog, ServiceWindow

logger = logging.getLogger(__name__)


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS service_windows (
    id                  TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    display_name        TEXT NOT NULL,
    day_of_week         INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6), -- 0=Sunday
    start_time          TEXT NOT NULL,  -- HH:MM
    end_time            TEXT NOT NULL,
    last_booking_time   TEXT NOT NULL,
    capacity            INTEGER NOT NULL CHECK (capacity > 0),
    slot_interval       INTEGER NOT NULL DEFAULT 30,
    meal_duration       INTEGER NOT NULL DEFAULT 60,
    is_active           INTEGER NOT NULL DEFAULT 1,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    UNIQUE (name, day_of_week)
);

CREATE INDEX IF NOT EXISTS idx_windows_dow ON service_windows(day_of_week);

CREATE TABLE IF NOT EXISTS closures (
    date                TEXT PRIMARY KEY,   -- YYYY-MM-DD, restaurant local
    reason              TEXT,
    created_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bookings (
    id                  TEXT PRIMARY KEY,
    confirmation_code   TEXT NOT NULL UNIQUE,
    service_name        TEXT NOT NULL,
    start_at            TEXT NOT NULL,      -- UTC ISO-8601
    end_at              TEXT NOT NULL,
    party_size          INTEGER NOT NULL CHECK (party_size > 0),
    name                TEXT NOT NULL,
    phone               TEXT NOT NULL,
    email               TEXT,
    notes               TEXT,
    status              TEXT NOT NULL DEFAULT 'confirmed'
                        CHECK (status IN ('confirmed', 'cancelled', 'completed', 'no_show')),
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bookings_start ON bookings(start_at);
CREATE INDEX IF NOT EXISTS idx_bookings_service ON bookings(service_name, status);

CREATE TABLE IF NOT EXISTS notification_logs (
    id                  TEXT PRIMARY KEY,
    booking_id          TEXT NOT NULL,
    attempt             INTEGER NOT NULL,
    sent_at             TEXT NOT NULL,
    channel             TEXT NOT NULL DEFAULT 'email',
    status              TEXT NOT NULL,
    error_message       TEXT,
    FOREIGN KEY (booking_id) REFERENCES bookings(id)
);

CREATE INDEX IF NOT EXISTS idx_logs_booking ON notification_logs(booking_id);
"""


# ── Default schedule ──────────────────────────────────────────────────────


def _window(name: str, display_name: str, dow: int, start: str, end: str, last: str) -> ServiceWindow:
    return ServiceWindow(
        name=name,
        display_name=display_name,
        day_of_week=dow,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        last_booking_time=time.fromisoformat(last),
        capacity=100,
        slot_interval=30,
        meal_duration=60,
    )


# Lunch Wednesday-Friday, dinner Tuesday-Saturday.
DEFAULT_SCHEDULE: list[ServiceWindow] = [
    *(_window("midi", "Déjeuner", dow, "12:00", "14:00", "13:30") for dow in (3, 4, 5)),
    *(_window("soir", "Dîner", dow, "19:00", "23:00", "21:30") for dow in (2, 3, 4, 5, 6)),
]


# ── Helpers ───────────────────────────────────────────────────────────────


def _iso_utc(dt: datetime) -> str:
    """Canonical text form for instants, so SQL string comparison orders them."""
    if dt.tzinfo is None:
        raise ValueError("naive datetime cannot be stored as an instant")
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def _now_iso() -> str:
    return _iso_utc(datetime.now(timezone.utc))


def _hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def _row_to_window(row: aiosqlite.Row) -> ServiceWindow:
    return ServiceWindow(
        name=row["name"],
        display_name=row["display_name"],
        day_of_week=row["day_of_week"],
        start_time=time.fromisoformat(row["start_time"]),
        end_time=time.fromisoformat(row["end_time"]),
        last_booking_time=time.fromisoformat(row["last_booking_time"]),
        capacity=row["capacity"],
        slot_interval=row["slot_interval"],
        meal_duration=row["meal_duration"],
        is_active=bool(row["is_active"]),
    )


def _row_to_booking(row: aiosqlite.Row) -> Booking:
    return Booking(
        id=UUID(row["id"]),
        confirmation_code=row["confirmation_code"],
        service_name=row["service_name"],
        start_at=datetime.fromisoformat(row["start_at"]),
        end_at=datetime.fromisoformat(row["end_at"]),
        party_size=row["party_size"],
        name=row["name"],
        phone=row["phone"],
        email=row["email"],
        notes=row["notes"],
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_log(row: aiosqlite.Row) -> NotificationLog:
    return NotificationLog(
        id=UUID(row["id"]),
        booking_id=UUID(row["booking_id"]),
        attempt=row["attempt"],
        sent_at=datetime.fromisoformat(row["sent_at"]),
        channel=row["channel"],
        status=row["status"],
        error_message=row["error_message"],
    )


class ReservationStore:
    """Async repository over a single aiosqlite connection."""

    def __init__(self, conn: aiosqlite.Connection, path: str) -> None:
        self._db = conn
        self.path = path

    # ── Lifecycle ──────────────────────────────────────────────────────

    @classmethod
    async def open(cls, db_path: str) -> ReservationStore:
        """Open the database and create tables if they don't exist."""
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        conn.row_factory = aiosqlite.Row  # dict-like rows
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")

        await conn.executescript(_SCHEMA)
        await conn.commit()
        logger.info("Database initialized at %s", path)
        return cls(conn, str(path))

    async def close(self) -> None:
        """Close the database connection."""
        await self._db.close()
        logger.info("Database connection closed")

    async def ping(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            async with self._db.execute("SELECT 1") as cur:
                await cur.fetchone()
        except (aiosqlite.Error, ValueError):
            logger.exception("Database ping failed")
            return False
        return True

    # ══════════════════════════════════════════════════════════════════
    #                    SCHEDULE STORE
    # ══════════════════════════════════════════════════════════════════

    async def get_active_windows(self, day_of_week: int) -> list[ServiceWindow]:
        """Active windows for a weekday, earliest service first."""
        async with self._db.execute(
            """
            SELECT * FROM service_windows
            WHERE day_of_week = ? AND is_active = 1
            ORDER BY start_time
            """,
            (day_of_week,),
        ) as cur:
            rows = await cur.fetchall()
        return [_row_to_window(r) for r in rows]

    async def get_active_window(self, name: str, day_of_week: int) -> ServiceWindow | None:
        async with self._db.execute(
            """
            SELECT * FROM service_windows
            WHERE name = ? AND day_of_week = ? AND is_active = 1
            """,
            (name, day_of_week),
        ) as cur:
            row = await cur.fetchone()
        return _row_to_window(row) if row else None

    async def list_windows(self) -> list[ServiceWindow]:
        """Every window, active or not, ordered by weekday then start."""
        async with self._db.execute(
            "SELECT * FROM service_windows ORDER BY day_of_week, start_time"
        ) as cur:
            rows = await cur.fetchall()
        return [_row_to_window(r) for r in rows]

    async def upsert_service_window(self, window: ServiceWindow) -> None:
        """Create a window or replace the one with the same (name, day_of_week)."""
        now = _now_iso()
        await self._db.execute(
            """
            INSERT INTO service_windows (
                id, name, display_name, day_of_week,
                start_time, end_time, last_booking_time,
                capacity, slot_interval, meal_duration, is_active,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (name, day_of_week) DO UPDATE SET
                display_name = excluded.display_name,
                start_time = excluded.start_time,
                end_time = excluded.end_time,
                last_booking_time = excluded.last_booking_time,
                capacity = excluded.capacity,
                slot_interval = excluded.slot_interval,
                meal_duration = excluded.meal_duration,
                is_active = excluded.is_active,
                updated_at = excluded.updated_at
            """,
            (
                str(uuid4()), window.name, window.display_name, window.day_of_week,
                _hhmm(window.start_time), _hhmm(window.end_time),
                _hhmm(window.last_booking_time),
                window.capacity, window.slot_interval, window.meal_duration,
                int(window.is_active),
                now, now,
            ),
        )
        await self._db.commit()

    async def set_window_active(self, name: str, day_of_week: int, active: bool) -> bool:
        """Enable or disable a window. Returns True if it exists."""
        cur = await self._db.execute(
            """
            UPDATE service_windows SET is_active = ?, updated_at = ?
            WHERE name = ? AND day_of_week = ?
            """,
            (int(active), _now_iso(), name, day_of_week),
        )
        await self._db.commit()
        return cur.rowcount > 0

    async def seed_default_schedule(self) -> int:
        """Load DEFAULT_SCHEDULE if no window exists yet. Returns rows added."""
        async with self._db.execute("SELECT COUNT(*) FROM service_windows") as cur:
            (count,) = await cur.fetchone()
        if count:
            return 0
        for window in DEFAULT_SCHEDULE:
            await self.upsert_service_window(window)
        logger.info("Seeded %d default service windows", len(DEFAULT_SCHEDULE))
        return len(DEFAULT_SCHEDULE)

    # ── Closures ───────────────────────────────────────────────────────

    async def get_closure(self, day: date) -> Closure | None:
        async with self._db.execute(
            "SELECT * FROM closures WHERE date = ?", (day.isoformat(),)
        ) as cur:
            row = await cur.fetchone()
        if row is None:
            return None
        return Closure(date=date.fromisoformat(row["date"]), reason=row["reason"])

    async def is_closed(self, day: date) -> bool:
        return await self.get_closure(day) is not None

    async def add_closure(self, day: date, reason: str | None = None) -> Closure:
        """Close a date. Re-closing an already closed date updates its reason."""
        await self._db.execute(
            """
            INSERT INTO closures (date, reason, created_at) VALUES (?, ?, ?)
            ON CONFLICT (date) DO UPDATE SET reason = excluded.reason
            """,
            (day.isoformat(), reason, _now_iso()),
        )
        await self._db.commit()
        return Closure(date=day, reason=reason)

    async def remove_closure(self, day: date) -> bool:
        """Reopen a date. Returns True if a closure was actually removed."""
        cur = await self._db.execute("DELETE FROM closures WHERE date = ?", (day.isoformat(),))
        await self._db.commit()
        return cur.rowcount > 0

    async def list_closures(self, date_from: date | None = None) -> list[Closure]:
        sql = "SELECT * FROM closures"
        params: list = []
        if date_from is not None:
            sql += " WHERE date >= ?"
            params.append(date_from.isoformat())
        sql += " ORDER BY date"
        async with self._db.execute(sql, params) as cur:
            rows = await cur.fetchall()
        return [Closure(date=date.fromisoformat(r["date"]), reason=r["reason"]) for r in rows]

    # ══════════════════════════════════════════════════════════════════
    #                    BOOKING LEDGER
    # ══════════════════════════════════════════════════════════════════

    async def list_confirmed_bookings(self, start: datetime, end: datetime) -> list[Booking]:
        """Confirmed bookings whose [start_at, end_at) overlaps [start, end)."""
        async with self._db.execute(
            """
            SELECT * FROM bookings
            WHERE status = 'confirmed' AND start_at < ? AND end_at > ?
            ORDER BY start_at
            """,
            (_iso_utc(end), _iso_utc(start)),
        ) as cur:
            rows = await cur.fetchall()
        return [_row_to_booking(r) for r in rows]

    async def sum_overlapping_party_size(
        self, service_name: str, start: datetime, end: datetime
    ) -> int:
        """Covers held by confirmed bookings of a service overlapping [start, end)."""
        async with self._db.execute(
            """
            SELECT COALESCE(SUM(party_size), 0) FROM bookings
            WHERE service_name = ?
              AND status = 'confirmed'
              AND start_at < ?
              AND end_at > ?
            """,
            (service_name, _iso_utc(end), _iso_utc(start)),
        ) as cur:
            (taken,) = await cur.fetchone()
        return int(taken)

    async def confirmation_code_exists(self, code: str) -> bool:
        async with self._db.execute(
            "SELECT 1 FROM bookings WHERE confirmation_code = ?", (code,)
        ) as cur:
            return await cur.fetchone() is not None

    async def insert_booking(
        self,
        *,
        confirmation_code: str,
        service_name: str,
        start_at: datetime,
        end_at: datetime,
        party_size: int,
        name: str,
        phone: str,
        email: str | None = None,
        notes: str | None = None,
    ) -> Booking:
        """
        Insert a confirmed booking and return it.

        Callers must hold the booking lock for the booking's (date, service)
        so the capacity check they made still holds.
        """
        booking_id = str(uuid4())
        now = _now_iso()
        await self._db.execute(
            """
            INSERT INTO bookings (
                id, confirmation_code, service_name, start_at, end_at,
                party_size, name, phone, email, notes, status,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'confirmed', ?, ?)
            """,
            (
                booking_id, confirmation_code, service_name,
                _iso_utc(start_at), _iso_utc(end_at),
                party_size, name, phone, email, notes,
                now, now,
            ),
        )
        await self._db.commit()
        return await self.get_booking(booking_id)  # type: ignore[return-value]

    async def get_booking(self, booking_id: str) -> Booking | None:
        async with self._db.execute(
            "SELECT * FROM bookings WHERE id = ?", (booking_id,)
        ) as cur:
            row = await cur.fetchone()
        return _row_to_booking(row) if row else None

    async def get_booking_by_code(self, code: str) -> Booking | None:
        async with self._db.execute(
            "SELECT * FROM bookings WHERE confirmation_code = ?", (code.upper(),)
        ) as cur:
            row = await cur.fetchone()
        return _row_to_booking(row) if row else None

    async def update_booking_status(self, code: str, status: str) -> Booking | None:
        """Transition a booking's status (operational tooling only)."""
        await self._db.execute(
            "UPDATE bookings SET status = ?, updated_at = ? WHERE confirmation_code = ?",
            (status, _now_iso(), code.upper()),
        )
        await self._db.commit()
        return await self.get_booking_by_code(code)

    # ══════════════════════════════════════════════════════════════════
    #                    NOTIFICATION LOG
    # ══════════════════════════════════════════════════════════════════

    async def create_notification_log(
        self,
        booking_id: UUID,
        *,
        attempt: int,
        status: str,
        channel: str = "email",
        error_message: str | None = None,
    ) -> NotificationLog:
        """Record a sent, failed or skipped confirmation."""
        log_id = str(uuid4())
        now = _now_iso()
        await self._db.execute(
            """
            INSERT INTO notification_logs
                (id, booking_id, attempt, sent_at, channel, status, error_message)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (log_id, str(booking_id), attempt, now, channel, status, error_message),
        )
        await self._db.commit()
        return NotificationLog(
            id=UUID(log_id),
            booking_id=booking_id,
            attempt=attempt,
            sent_at=datetime.fromisoformat(now),
            channel=channel,
            status=status,
            error_message=error_message,
        )

    async def list_notification_logs(self, booking_id: UUID) -> list[NotificationLog]:
        """Delivery attempts for a booking, oldest first."""
        async with self._db.execute(
            "SELECT * FROM notification_logs WHERE booking_id = ? ORDER BY attempt",
            (str(booking_id),),
        ) as cur:
            rows = await cur.fetchall()
        return [_row_to_log(r) for r in rows]

    async def list_retryable_notifications(
        self, now: datetime, max_attempts: int
    ) -> list[tuple[Booking, int]]:
        """
        Upcoming confirmed bookings whose last confirmation attempt failed.

        Returns (booking, attempts_so_far) pairs for bookings that still
        have attempts left.
        """
        async with self._db.execute(
            """
            SELECT b.*, l.attempt AS last_attempt
            FROM bookings b
            JOIN notification_logs l ON l.booking_id = b.id
            WHERE b.status = 'confirmed'
              AND b.email IS NOT NULL
              AND b.start_at > ?
              AND l.attempt = (
                  SELECT MAX(attempt) FROM notification_logs WHERE booking_id = b.id
              )
              AND l.status = 'failed'
              AND l.attempt < ?
            ORDER BY b.start_at
            """,
            (_iso_utc(now), max_attempts),
        ) as cur:
            rows = await cur.fetchall()
        return [(_row_to_booking(r), r["last_attempt"]) for r in rows]
