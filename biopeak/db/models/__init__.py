from .user import User
from .garmin_token import GarminToken
from .garmin_activity import GarminActivity
from .backfill_job import BackfillJob
from .rate_limit import BackfillRateLimit


__all__ = [
    "User",
    "GarminToken",
    "GarminActivity",
    "BackfillJob",
    "BackfillRateLimit",
]
