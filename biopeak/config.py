import os
from dotenv import load_dotenv

load_dotenv()

SQLALCHEMY_DATABASE_URL = os.getenv("SQLALCHEMY_DATABASE_URL", "sqlite:///./biopeak.db")

APP_SECRET_KEY = os.getenv("APP_SECRET_KEY", "dev-insecure-change-me")
SERVICE_API_KEY = os.getenv("SERVICE_API_KEY", "")

REDIS_URL = os.getenv("REDIS_URL")

GARMIN_CLIENT_ID = os.getenv("GARMIN_CLIENT_ID", "")
GARMIN_CLIENT_SECRET = os.getenv("GARMIN_CLIENT_SECRET", "")
GARMIN_TOKEN_URL = os.getenv("GARMIN_TOKEN_URL", "https://diauth.garmin.com/token")
GARMIN_BACKFILL_BASE_URL = os.getenv(
    "GARMIN_BACKFILL_BASE_URL", "https://apis.garmin.com/wellness-api/rest/backfill"
)
# oauth1 | bearer
GARMIN_AUTH_SCHEME = os.getenv("GARMIN_AUTH_SCHEME", "oauth1")

TOKEN_REFRESH_MARGIN_MINUTES = int(os.getenv("TOKEN_REFRESH_MARGIN_MINUTES", "5"))

# Backfill policy (vendor limits)
BACKFILL_MAX_RETRIES = int(os.getenv("BACKFILL_MAX_RETRIES", "3"))
BACKFILL_MAX_PERIOD_DAYS = int(os.getenv("BACKFILL_MAX_PERIOD_DAYS", "90"))
BACKFILL_MAX_LOOKBACK_MONTHS = int(os.getenv("BACKFILL_MAX_LOOKBACK_MONTHS", "6"))
BACKFILL_BATCH_SIZE = int(os.getenv("BACKFILL_BATCH_SIZE", "10"))

BACKFILL_DAILY_LIMIT_UNITS = int(os.getenv("BACKFILL_DAILY_LIMIT_UNITS", "100"))
BACKFILL_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("BACKFILL_RATE_LIMIT_WINDOW_SECONDS", "60"))
BACKFILL_RATE_LIMIT_COOLDOWN_SECONDS = int(os.getenv("BACKFILL_RATE_LIMIT_COOLDOWN_SECONDS", "60"))
BACKFILL_JOB_DELAY_SECONDS = float(os.getenv("BACKFILL_JOB_DELAY_SECONDS", "1"))
BACKFILL_USER_DELAY_SECONDS = float(os.getenv("BACKFILL_USER_DELAY_SECONDS", "2"))

BACKFILL_BACKOFF_BASE_SECONDS = int(os.getenv("BACKFILL_BACKOFF_BASE_SECONDS", "300"))
BACKFILL_BACKOFF_JITTER = float(os.getenv("BACKFILL_BACKOFF_JITTER", "0.1"))

# Completion heuristics: the vendor never signals that a backfill finished
BACKFILL_COMPLETE_AFTER_HOURS = float(os.getenv("BACKFILL_COMPLETE_AFTER_HOURS", "24"))
BACKFILL_COMPLETE_WITH_DATA_AFTER_HOURS = float(os.getenv("BACKFILL_COMPLETE_WITH_DATA_AFTER_HOURS", "2"))
BACKFILL_STUCK_PENDING_HOURS = float(os.getenv("BACKFILL_STUCK_PENDING_HOURS", "1"))
BACKFILL_STUCK_IN_PROGRESS_HOURS = float(os.getenv("BACKFILL_STUCK_IN_PROGRESS_HOURS", "6"))
BACKFILL_TIMEOUT_HOURS = float(os.getenv("BACKFILL_TIMEOUT_HOURS", "24"))
