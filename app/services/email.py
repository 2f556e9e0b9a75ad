"""
Email service — sends booking confirmations via SMTP.

In development (no SMTP configured), emails are printed to the console
so you can see what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.config import (
    RESTAURANT_CONTACT_EMAIL,
    RESTAURANT_CONTACT_PHONE,
    RESTAURANT_NAME,
    RESTAURANT_TIMEZONE,
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    smtp_enabled,
)
from app.models import Booking

logger = logging.getLogger(__name__)


def _booking_lines(booking: Booking, service_display_name: str) -> list[tuple[str, str]]:
    local_start = booking.start_at.astimezone(RESTAURANT_TIMEZONE)
    guests = f"{booking.party_size} guest{'s' if booking.party_size > 1 else ''}"
    return [
        ("Code", booking.confirmation_code),
        ("Date", local_start.strftime("%A %d %B %Y")),
        ("Time", local_start.strftime("%H:%M")),
        ("Service", service_display_name),
        ("Guests", guests),
    ]


def _build_plain_body(booking: Booking, service_display_name: str) -> str:
    plain = f"Hello {booking.name},\n\nYour table at {RESTAURANT_NAME} is confirmed.\n\n"
    plain += "\n".join(f"{label}: {value}" for label, value in _booking_lines(booking, service_display_name))
    plain += (
        f"\n\nTo change or cancel, contact us at {RESTAURANT_CONTACT_PHONE}"
        f" or {RESTAURANT_CONTACT_EMAIL}.\n"
    )
    return plain


def _build_html_body(booking: Booking, service_display_name: str) -> str:
    rows = ""
    for label, value in _booking_lines(booking, service_display_name):
        rows += f"""
        <tr>
          <td style="color:#666">{label}</td>
          <td align="right"><strong>{escape(value)}</strong></td>
        </tr>"""

    return f"""
    <html>
    <body style="font-family:sans-serif;color:#161616">
      <h2>{escape(RESTAURANT_NAME)} — reservation confirmed</h2>
      <p>Hello {escape(booking.name)}, we look forward to welcoming you.</p>
      <table border="0" cellpadding="6" cellspacing="0"
             style="border-collapse:collapse;border:1px solid #e5e5e5">
        <tbody>{rows}
        </tbody>
      </table>
      <p style="margin-top:1em;font-size:0.9em;color:#888">
        To change or cancel your reservation, contact us at
        {escape(RESTAURANT_CONTACT_PHONE)} or {escape(RESTAURANT_CONTACT_EMAIL)}.
      </p>
    </body>
    </html>
    """


async def send_booking_confirmation(booking: Booking, service_display_name: str) -> None:
    """
    Send (or log) the confirmation email for a committed booking.

    If SMTP is not configured, falls back to console output.
    Raises on delivery failure; callers decide what a failure means.
    """
    if not booking.email:
        raise ValueError(f"booking {booking.confirmation_code} has no email address")

    subject = f"Reservation confirmed - {booking.confirmation_code}"

    # ── Console fallback (dev mode) ───────────────────────────────────
    if not smtp_enabled():
        logger.info(
            "📧 [DEV] Would send email to %s:\n  Subject: %s\n%s",
            booking.email,
            subject,
            _build_plain_body(booking, service_display_name),
        )
        return

    # ── Real SMTP send ────────────────────────────────────────────────
    import aiosmtplib

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{RESTAURANT_NAME} <{SMTP_FROM_EMAIL}>"
    msg["To"] = booking.email

    msg.attach(MIMEText(_build_plain_body(booking, service_display_name), "plain"))
    msg.attach(MIMEText(_build_html_body(booking, service_display_name), "html"))

    try:
        await aiosmtplib.send(
            msg,
            hostname=SMTP_HOST,
            port=SMTP_PORT,
            username=SMTP_USERNAME,
            password=SMTP_PASSWORD,
            start_tls=SMTP_USE_TLS,
        )
        logger.info("Confirmation sent to %s (%s)", booking.email, booking.confirmation_code)
    except Exception:
        logger.exception("Failed to send confirmation to %s", booking.email)
        raise
