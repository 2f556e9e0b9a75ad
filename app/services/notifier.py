"""
Booking confirmation dispatcher.

A committed booking is handed to ``BookingNotifier.dispatch`` which runs
the delivery as a detached asyncio task:

1.  Bookings without an email are logged as ``skipped``.
2.  Otherwise the confirmation is sent under ``NOTIFY_TIMEOUT``.
3.  The outcome (``sent`` / ``failed``) is written to the notification log.

Failures are logged and recorded, never raised: the booking is already
committed when dispatch happens. ``NotificationRetryWorker`` sweeps the log
periodically and re-attempts failed deliveries for upcoming bookings.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo

from app.db import ReservationStore
from app.models import Booking
from app.services.booking_rules import day_of_week, local_date, utcnow
from app.services.email import send_booking_confirmation

logger = logging.getLogger(__name__)

ConfirmationSender = Callable[[Booking, str], Awaitable[None]]


class BookingNotifier:
    """Fire-and-forget confirmation delivery with its own failure channel."""

    def __init__(
        self,
        store: ReservationStore,
        *,
        tz: tzinfo,
        timeout: float,
        sender: ConfirmationSender = send_booking_confirmation,
    ) -> None:
        self._store = store
        self._tz = tz
        self._timeout = timeout
        self._sender = sender
        self._tasks: set[asyncio.Task[str]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # ── Dispatch ───────────────────────────────────────────────────────

    def dispatch(self, booking: Booking) -> asyncio.Task[str]:
        """Start delivering the confirmation without waiting for it."""
        task = asyncio.create_task(
            self.notify(booking), name=f"notify-{booking.confirmation_code}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def notify(self, booking: Booking, *, attempt: int = 1) -> str:
        """One delivery attempt. Returns the recorded status."""
        error: str | None = None
        if not booking.email:
            status = "skipped"
        else:
            try:
                display_name = await self._service_display_name(booking)
                await asyncio.wait_for(
                    self._sender(booking, display_name), timeout=self._timeout
                )
                status = "sent"
            except Exception as exc:
                status = "failed"
                error = str(exc) or type(exc).__name__
                logger.warning(
                    "Confirmation for %s failed (attempt %d): %s",
                    booking.confirmation_code, attempt, error,
                )

        try:
            await self._store.create_notification_log(
                booking.id, attempt=attempt, status=status, error_message=error
            )
        except Exception:
            logger.exception(
                "Could not record notification outcome for %s", booking.confirmation_code
            )

        logger.info(
            "Confirmation for %s: %s (attempt %d)", booking.confirmation_code, status, attempt
        )
        return status

    async def wait_idle(self) -> None:
        """Wait until every dispatched delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel deliveries still in flight."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d pending confirmations", len(tasks))

    async def _service_display_name(self, booking: Booking) -> str:
        dow = day_of_week(local_date(booking.start_at, self._tz))
        window = await self._store.get_active_window(booking.service_name, dow)
        return window.display_name if window else booking.service_name


class NotificationRetryWorker:
    """Re-attempts failed confirmations until they succeed or run out of attempts.

    One sweep every ``interval`` seconds. A sweep that raises is logged and
    the next one still runs on schedule.
    """

    def __init__(
        self,
        notifier: BookingNotifier,
        store: ReservationStore,
        *,
        interval: float,
        max_attempts: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._notifier = notifier
        self._store = store
        self._interval = interval
        self._max_attempts = max_attempts
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._sweep_forever(), name="notification-retry")
        logger.info(
            "Confirmation retries every %ss (max %d attempts)",
            self._interval, self._max_attempts,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Confirmation retries stopped")

    async def run_once(self) -> int:
        """Sweep now; returns how many confirmations were re-sent."""
        retryable = await self._store.list_retryable_notifications(
            self._clock(), self._max_attempts
        )
        if not retryable:
            return 0

        logger.info("Retrying %d failed confirmations", len(retryable))
        for booking, attempts in retryable:
            await self._notifier.notify(booking, attempt=attempts + 1)
        return len(retryable)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Confirmation retry sweep failed, next in %ss", self._interval)
