"""
Housekeeping passes for backfill jobs.

Garmin accepts a backfill with a 202 and then pushes data through webhooks,
but never says when it is done. Completion is therefore inferred from elapsed
time and from activities landing inside the job's period. The thresholds live
in biopeak.config so they can be tuned without code changes.
"""
import logging
from datetime import datetime, timedelta

import requests
from sqlalchemy.orm import Session

from biopeak.config import (
    BACKFILL_COMPLETE_AFTER_HOURS,
    BACKFILL_COMPLETE_WITH_DATA_AFTER_HOURS,
    BACKFILL_STUCK_IN_PROGRESS_HOURS,
    BACKFILL_STUCK_PENDING_HOURS,
    BACKFILL_TIMEOUT_HOURS,
)
from biopeak.core.errors import BackfillError
from biopeak.db.crud import backfill as backfill_crud
from biopeak.db.crud.activities import count_activities_in_period
from biopeak.db.models.backfill_job import BackfillJob, COMPLETED, IN_PROGRESS, PENDING
from biopeak.db.schemas.backfill import CleanupResult, RecalculationDetail, RecalculationResult
from biopeak.garmin import client as garmin_client
from biopeak.garmin.tokens import ensure_valid_token
from biopeak.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def _hours_since_request(job: BackfillJob, now: datetime) -> float:
    return (now - ensure_utc(job.requested_at)).total_seconds() / 3600


def _activity_count(db: Session, job: BackfillJob) -> int:
    return count_activities_in_period(
        db, user_id=job.user_id, start=job.period_start, end=job.period_end
    )


def recalculate_backfill_activities(db: Session, now: datetime | None = None) -> RecalculationResult:
    now = now or utcnow()
    jobs = backfill_crud.jobs_with_status(db, [PENDING, IN_PROGRESS])
    logger.info(f"Recalculating {len(jobs)} active backfills")

    result = RecalculationResult()
    for job in jobs:
        job_id, user_id, old_status = job.id, job.user_id, job.status
        old_activities = job.activities_processed or 0
        try:
            count = _activity_count(db, job)
            hours = _hours_since_request(job, now)

            new_status = old_status
            if old_status == PENDING and count > 0:
                new_status = IN_PROGRESS
            elif old_status == IN_PROGRESS and hours > BACKFILL_COMPLETE_AFTER_HOURS:
                new_status = COMPLETED
            elif old_status == IN_PROGRESS and hours > BACKFILL_COMPLETE_WITH_DATA_AFTER_HOURS and count > 0:
                new_status = COMPLETED

            job.activities_processed = count
            if new_status != old_status:
                job.status = new_status
                if new_status == COMPLETED:
                    job.completed_at = now
                    result.completed += 1
            db.commit()

            result.processed += 1
            result.details.append(RecalculationDetail(
                backfill_id=job_id,
                user_id=user_id,
                old_status=old_status,
                new_status=new_status,
                old_activities=old_activities,
                new_activities=count,
                hours_since_request=round(hours, 1),
            ))
            logger.info(f"Backfill {job_id}: {old_status} -> {new_status}, activities: {count}")
        except Exception as e:
            db.rollback()
            logger.exception(f"Error recalculating backfill {job_id}")
            result.errors += 1
            result.details.append(RecalculationDetail(backfill_id=job_id, user_id=user_id, error=str(e)))

    logger.info(
        f"Recalculation complete: {result.processed} processed, {result.completed} completed, {result.errors} errors"
    )
    return result


def _retry_stuck_job(db: Session, job: BackfillJob, now: datetime) -> bool:
    try:
        credentials = ensure_valid_token(db, job.user_id, now=now)
        garmin_client.request_backfill(job.summary_type, job.period_start, job.period_end, credentials)
    except (BackfillError, requests.exceptions.RequestException) as e:
        db.rollback()
        logger.warning(f"Retry failed for stuck backfill {job.id}: {e}")
        return False

    backfill_crud.mark_in_progress(db, job)
    return True


def cleanup_stuck_backfills(db: Session, now: datetime | None = None) -> CleanupResult:
    """
    Resolve jobs stuck in pending or in_progress: complete them when data arrived,
    time them out after BACKFILL_TIMEOUT_HOURS, otherwise ask Garmin again.
    """
    now = now or utcnow()
    jobs = backfill_crud.stuck_jobs(
        db,
        pending_before=now - timedelta(hours=BACKFILL_STUCK_PENDING_HOURS),
        in_progress_before=now - timedelta(hours=BACKFILL_STUCK_IN_PROGRESS_HOURS),
    )
    logger.info(f"Found {len(jobs)} stuck backfills")

    result = CleanupResult(processed=len(jobs))
    for job in jobs:
        job_id = job.id
        try:
            count = _activity_count(db, job)
            if count > 0:
                logger.info(f"Marking backfill {job_id} as completed with {count} activities")
                backfill_crud.mark_completed(db, job, completed_at=now, activities_processed=count)
                result.retried += 1
                continue

            hours_stuck = _hours_since_request(job, now)
            if hours_stuck > BACKFILL_TIMEOUT_HOURS:
                logger.info(f"Marking backfill {job_id} as timed out ({hours_stuck:.1f} hours stuck)")
                backfill_crud.mark_error(
                    db, job, f"Timeout: No activities received after {hours_stuck:.1f} hours"
                )
                result.timed_out += 1
            elif _retry_stuck_job(db, job, now):
                result.retried += 1
        except Exception:
            db.rollback()
            logger.exception(f"Error cleaning up backfill {job_id}")
            result.errors += 1

    logger.info(
        f"Cleanup completed: {result.retried} retried, {result.timed_out} timed out, {result.errors} errors"
    )
    return result
