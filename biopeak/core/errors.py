"""
Failure taxonomy for the Garmin backfill pipeline.

Validation and connection problems are raised to the caller synchronously.
Vendor and per-job failures are recorded on the job row by the processor and
never escape a processing pass.
"""
from datetime import datetime


class BackfillError(Exception):
    """Base class for every error raised by the backfill pipeline."""


class BackfillValidationError(BackfillError):
    """Malformed or out-of-policy backfill request. No job rows were written."""


class NotConnectedError(BackfillError):
    def __init__(self, user_id=None):
        self.user_id = user_id
        super().__init__("User not connected to Garmin")


class TokenError(BackfillError):
    """Token present but unusable."""


class TokenExpiredError(TokenError):
    def __init__(self, message: str = "Token expired. Please reconnect to Garmin."):
        super().__init__(message)


class RefreshFailedError(TokenError):
    pass


class VendorRejection(BackfillError):
    """Garmin answered the backfill call with anything but 202."""

    def __init__(self, status_code: int, body: str, retry_after: int | None = None):
        self.status_code = status_code
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"Garmin API error: {status_code} - {body}")


class RateLimitExceeded(BackfillError):
    def __init__(self, reset_at: datetime):
        self.reset_at = reset_at
        super().__init__(f"Backfill rate limit reached, resets at {reset_at.isoformat()}")
