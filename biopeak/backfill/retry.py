import math
import random
from datetime import datetime, timedelta
from typing import Callable

from biopeak.config import BACKFILL_BACKOFF_BASE_SECONDS, BACKFILL_BACKOFF_JITTER

SECONDS_PER_DAY = 86400


def backoff_delay(
    retry_count: int,
    jitter: float = 0.0,
    rng: Callable[[], float] = random.random,
) -> timedelta:
    """
    Exponential backoff: base * 2**retry_count (5, 10, 20 minutes with the default base),
    stretched by up to `jitter` of itself. With jitter < 1 the delay for k + 1 is
    always longer than any delay for k.
    """
    if retry_count < 0:
        raise ValueError("retry_count must be >= 0")
    if not 0 <= jitter < 1:
        raise ValueError("jitter must be in [0, 1)")
    delay = BACKFILL_BACKOFF_BASE_SECONDS * (2 ** retry_count)
    if jitter:
        delay += delay * jitter * rng()
    return timedelta(seconds=delay)


def next_retry_at(
    now: datetime,
    retry_count: int,
    retry_after: int | None = None,
    jitter: float = BACKFILL_BACKOFF_JITTER,
) -> datetime:
    delay = backoff_delay(retry_count, jitter=jitter)
    if retry_after is not None and retry_after > delay.total_seconds():
        delay = timedelta(seconds=retry_after)
    return now + delay


def period_days(period_start: datetime, period_end: datetime) -> int:
    """Day-units a backfill request costs against the vendor quota."""
    return math.ceil((period_end - period_start).total_seconds() / SECONDS_PER_DAY)
