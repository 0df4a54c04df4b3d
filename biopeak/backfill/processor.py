"""
Batch worker that advances pending and retryable backfill jobs.

Meant to be invoked repeatedly (Celery beat or the HTTP trigger). One pass:
select runnable jobs oldest-first, group them per user, skip users under a
rate-limit cool-down, validate tokens, then submit each job to Garmin while
keeping the user's day-unit usage under the quota. Per-job failures are
recorded on the row and never abort the pass.
"""
import logging
import time
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, List, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from biopeak.config import (
    BACKFILL_BATCH_SIZE,
    BACKFILL_JOB_DELAY_SECONDS,
    BACKFILL_USER_DELAY_SECONDS,
)
from biopeak.core.errors import RateLimitExceeded, VendorRejection
from biopeak.db.crud import backfill as backfill_crud
from biopeak.db.crud import rate_limit as rate_limit_crud
from biopeak.db.models.backfill_job import BackfillJob, ERROR
from biopeak.db.schemas.backfill import ProcessorResult
from biopeak.garmin import client as garmin_client
from biopeak.garmin.tokens import GarminCredentials, ensure_valid_token
from biopeak.backfill.retry import next_retry_at, period_days
from biopeak.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

TOKEN_INVALID_MESSAGE = "User tokens not found or invalid"


def _group_by_user(jobs: List[BackfillJob]) -> Dict[UUID, List[BackfillJob]]:
    grouped: Dict[UUID, List[BackfillJob]] = OrderedDict()
    for job in jobs:
        grouped.setdefault(job.user_id, []).append(job)
    return grouped


def _rate_limited_until(db: Session, user_id: UUID, now: datetime) -> datetime | None:
    job_reset = ensure_utc(backfill_crud.user_rate_limited_until(db, user_id, now))
    ledger_reset = rate_limit_crud.ledger_blocked_until(db, user_id, now)
    candidates = [r for r in (job_reset, ledger_reset) if r is not None]
    return max(candidates) if candidates else None


def _record_job_failure(
    db: Session,
    job: BackfillJob,
    message: str,
    now: datetime,
    retry_after: int | None = None,
) -> None:
    db.rollback()
    db.refresh(job)
    retry_at = next_retry_at(now, job.retry_count, retry_after=retry_after)
    backfill_crud.record_failure(db, job, message=message, next_retry_at=retry_at)
    if job.retry_count >= job.max_retries:
        logger.warning(f"Backfill {job.id} exhausted {job.max_retries} retries: {message}")
    else:
        logger.info(f"Backfill {job.id} retry {job.retry_count}/{job.max_retries} at {retry_at.isoformat()}")


def _process_job(
    db: Session,
    job: BackfillJob,
    snapshot: Tuple[int, str],
    credentials: GarminCredentials,
    units: int,
    now: datetime,
) -> bool:
    """Claim and submit one job. True when Garmin accepted it."""
    expected_version, expected_status = snapshot
    if not backfill_crud.claim_job(
        db, job, expected_version=expected_version, expected_status=expected_status
    ):
        logger.warning(f"Backfill {job.id} was claimed by another processor, skipping")
        rate_limit_crud.refund(db, job.user_id, units)
        return False

    try:
        garmin_client.request_backfill(job.summary_type, job.period_start, job.period_end, credentials)
    except VendorRejection as e:
        rate_limit_crud.refund(db, job.user_id, units)
        _record_job_failure(db, job, e.body or str(e), now, retry_after=e.retry_after)
        raise
    return True


def _mark_token_invalid(db: Session, user_jobs: List[BackfillJob], result: ProcessorResult) -> None:
    for job in user_jobs:
        # already flagged on an earlier pass; the user has not reconnected yet
        if job.status == ERROR and job.error_message == TOKEN_INVALID_MESSAGE:
            continue
        backfill_crud.mark_error(db, job, TOKEN_INVALID_MESSAGE)
        result.errors += 1


def _process_user_jobs(
    db: Session,
    current_user: UUID,
    user_jobs: List[BackfillJob],
    snapshots: Dict[UUID, Tuple[int, str]],
    now: datetime,
    result: ProcessorResult,
    sleep: Callable[[float], None],
) -> None:
    blocked_until = _rate_limited_until(db, current_user, now)
    if blocked_until is not None:
        logger.info(f"User {current_user} is rate limited until {blocked_until.isoformat()}")
        return

    try:
        credentials = ensure_valid_token(db, current_user, now=now)
    except Exception as e:
        # NotConnected, expired without refresh, refresh failure or unreadable row
        db.rollback()
        logger.error(f"No valid tokens for user {current_user}: {e}")
        _mark_token_invalid(db, user_jobs, result)
        return

    for job_index, job in enumerate(user_jobs):
        units = period_days(ensure_utc(job.period_start), ensure_utc(job.period_end))
        reserved = False

        try:
            rate_limit_crud.reserve_units(db, current_user, units, now)
            reserved = True
            logger.info(f"Processing backfill {job.id} for user {current_user} ({job.summary_type})")
            if _process_job(db, job, snapshots[job.id], credentials, units, now):
                result.processed += 1
        except RateLimitExceeded as e:
            logger.info(f"Rate limit would be exceeded for user {current_user}, deferring to {e.reset_at.isoformat()}")
            backfill_crud.set_rate_limit_reset(db, job, e.reset_at)
            result.rate_limited = True
            result.rate_limit_reset = e.reset_at
            return
        except VendorRejection:
            result.errors += 1
        except Exception as e:
            db.rollback()
            logger.exception(f"Unexpected error processing backfill {job.id}")
            try:
                if reserved:
                    rate_limit_crud.refund(db, current_user, units)
                _record_job_failure(db, job, f"Processing error: {e}", now)
            except SQLAlchemyError:
                db.rollback()
                logger.exception(f"Could not record failure for backfill {job.id}")
            result.errors += 1

        if job_index < len(user_jobs) - 1:
            sleep(BACKFILL_JOB_DELAY_SECONDS)


def process_pending_jobs(
    db: Session,
    user_id: UUID | None = None,
    batch_size: int = BACKFILL_BATCH_SIZE,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ProcessorResult:
    now = now or utcnow()
    jobs = backfill_crud.select_runnable_jobs(db, now=now, user_id=user_id, batch_size=batch_size)
    logger.info(f"Backfill processor found {len(jobs)} jobs to process")

    # claims compare against what was selected, not what the row holds later
    snapshots = {job.id: (job.version, job.status) for job in jobs}

    result = ProcessorResult(total_found=len(jobs))
    by_user = _group_by_user(jobs)
    user_ids = list(by_user)

    for user_index, current_user in enumerate(user_ids):
        try:
            _process_user_jobs(db, current_user, by_user[current_user], snapshots, now, result, sleep)
        except Exception:
            db.rollback()
            logger.exception(f"Unexpected error processing backfills for user {current_user}")
            result.errors += 1

        if user_index < len(user_ids) - 1:
            sleep(BACKFILL_USER_DELAY_SECONDS)

    logger.info(
        f"Backfill processing completed: {result.processed} processed, {result.errors} errors"
    )
    return result
