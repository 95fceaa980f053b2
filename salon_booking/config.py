import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon_booking.db")

# Single wall-clock zone for the whole deployment (appointments are stored as naive local times)
SALON_TIMEZONE = os.getenv("SALON_TIMEZONE", "Europe/Zurich")

# Booking defaults - used when a salon has no booking_rules row
DEFAULT_SLOT_GRANULARITY_MINUTES = int(os.getenv("DEFAULT_SLOT_GRANULARITY_MINUTES", "15"))
DEFAULT_MIN_LEAD_TIME_MINUTES = int(os.getenv("DEFAULT_MIN_LEAD_TIME_MINUTES", "0"))
DEFAULT_MAX_BOOKING_HORIZON_DAYS = int(os.getenv("DEFAULT_MAX_BOOKING_HORIZON_DAYS", "60"))
DEFAULT_SLOT_QUERY_DAYS = int(os.getenv("DEFAULT_SLOT_QUERY_DAYS", "14"))
DEFAULT_RESERVATION_HOLD_MINUTES = int(os.getenv("DEFAULT_RESERVATION_HOLD_MINUTES", "15"))
DEFAULT_AUTO_CONFIRM_ONLINE = os.getenv("DEFAULT_AUTO_CONFIRM_ONLINE", "false").lower() == "true"
# "service" (max of the requested services' buffers) or "salon" (salon-wide visit buffer)
DEFAULT_BUFFER_SOURCE = os.getenv("DEFAULT_BUFFER_SOURCE", "service")
DEFAULT_VISIT_BUFFER_MINUTES = int(os.getenv("DEFAULT_VISIT_BUFFER_MINUTES", "0"))
MAX_SERVICES_PER_APPOINTMENT = int(os.getenv("MAX_SERVICES_PER_APPOINTMENT", "5"))

# Swiss standard VAT, snapshotted when a service has no explicit rate
DEFAULT_TAX_RATE_PERCENT = float(os.getenv("DEFAULT_TAX_RATE_PERCENT", "8.1"))

# Admin endpoints (working hours, absences, status changes)
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

# Maintenance endpoints called by the scheduler (reservation cleanup)
CRON_SECRET = os.getenv("CRON_SECRET")


def salon_now() -> datetime:
    """Current salon wall-clock time as a naive datetime"""
    return datetime.now(ZoneInfo(SALON_TIMEZONE)).replace(tzinfo=None)
