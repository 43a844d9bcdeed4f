import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = "lodging"

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Pricing
DEFAULT_TAX_RATE = Decimal(os.getenv("DEFAULT_TAX_RATE", "0.08"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "usd").lower()

# Reservation creation waits at most this long for the per-unit lock
UNIT_LOCK_TIMEOUT_MS = int(os.getenv("UNIT_LOCK_TIMEOUT_MS", "3000"))

# Payment processor
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
# Local development only: accept unsigned webhook bodies when no secret is set
WEBHOOK_ALLOW_UNSIGNED = os.getenv("WEBHOOK_ALLOW_UNSIGNED", "false").lower() == "true"
PROCESSOR_TIMEOUT_SECONDS = float(os.getenv("PROCESSOR_TIMEOUT_SECONDS", "10"))

# Notifications
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL", "")
DISPATCH_MAX_ATTEMPTS = int(os.getenv("DISPATCH_MAX_ATTEMPTS", "3"))
DISPATCH_BACKOFF_SECONDS = float(os.getenv("DISPATCH_BACKOFF_SECONDS", "0.5"))
# A claim older than this is treated as abandoned by a crashed worker
DISPATCH_CLAIM_TTL_SECONDS = int(os.getenv("DISPATCH_CLAIM_TTL_SECONDS", "300"))
