"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

# uvicorn bind address (see main.py)
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
API_RELOAD: bool = os.getenv("API_RELOAD", "false").lower() == "true"

# Extra allowed origins for the static site, comma separated.
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
]

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "reservations.db"))

# Load the default lunch/dinner schedule when the store has no windows yet.
SEED_DEFAULT_SCHEDULE: bool = os.getenv("SEED_DEFAULT_SCHEDULE", "true").lower() == "true"

# ── Restaurant ────────────────────────────────────────────────────────────

RESTAURANT_NAME: str = os.getenv("RESTAURANT_NAME", "La Jardinerie")
RESTAURANT_CONTACT_PHONE: str = os.getenv("RESTAURANT_CONTACT_PHONE", "+33400000000")
RESTAURANT_CONTACT_EMAIL: str = os.getenv("RESTAURANT_CONTACT_EMAIL", "contact@lajardinerie.fr")

# Dates, weekdays and service hours are all read in this timezone.
RESTAURANT_TIMEZONE = ZoneInfo(os.getenv("RESTAURANT_TIMEZONE", "Europe/Paris"))

# ── Booking rules ─────────────────────────────────────────────────────────

MIN_ADVANCE_NOTICE_MINUTES: int = int(os.getenv("MIN_ADVANCE_NOTICE_MINUTES", "60"))
MAX_ADVANCE_DAYS: int = int(os.getenv("MAX_ADVANCE_DAYS", "30"))
MIN_PARTY_SIZE: int = 1
MAX_PARTY_SIZE: int = int(os.getenv("MAX_PARTY_SIZE", "20"))

# Seconds a commit may wait for the per-(date, service) lock.
BOOKING_LOCK_TIMEOUT: float = float(os.getenv("BOOKING_LOCK_TIMEOUT", "10"))

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "reservations@lajardinerie.fr")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
# Handy for local development to avoid burning real SMTP quota.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default) — send if credentials are configured
      • "true"  — always send (will fail if credentials are missing)
      • "false" — never send, print to console instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    # "auto": send only when credentials are fully configured
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


# ── Notifier ──────────────────────────────────────────────────────────────

# Upper bound (seconds) on a single confirmation delivery attempt.
NOTIFY_TIMEOUT: float = float(os.getenv("NOTIFY_TIMEOUT", "10"))

# Delivery attempts per booking, including the first one.
NOTIFY_MAX_ATTEMPTS: int = int(os.getenv("NOTIFY_MAX_ATTEMPTS", "3"))

# How often failed confirmations are retried (seconds).
NOTIFY_RETRY_INTERVAL: float = float(os.getenv("NOTIFY_RETRY_INTERVAL", "120"))
