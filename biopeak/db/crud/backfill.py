from __future__ import annotations
from datetime import datetime
from typing import Iterable, List
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from biopeak.config import BACKFILL_MAX_RETRIES
from biopeak.db.models.backfill_job import (
    BackfillJob,
    COMPLETED,
    ERROR,
    IN_PROGRESS,
    PENDING,
)


def find_job(
    db: Session,
    *,
    user_id: UUID,
    period_start: datetime,
    period_end: datetime,
    summary_type: str,
) -> BackfillJob | None:
    return (
        db.query(BackfillJob)
        .filter(
            BackfillJob.user_id == user_id,
            BackfillJob.period_start == period_start,
            BackfillJob.period_end == period_end,
            BackfillJob.summary_type == summary_type,
        )
        .first()
    )


def create_job(
    db: Session,
    *,
    user_id: UUID,
    period_start: datetime,
    period_end: datetime,
    summary_type: str,
    requested_at: datetime,
) -> BackfillJob:
    job = BackfillJob(
        user_id=user_id,
        period_start=period_start,
        period_end=period_end,
        summary_type=summary_type,
        status=PENDING,
        requested_at=requested_at,
        activities_processed=0,
        retry_count=0,
        max_retries=BACKFILL_MAX_RETRIES,
        is_duplicate=False,
        version=0,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def reset_job_for_request(db: Session, job: BackfillJob, requested_at: datetime) -> BackfillJob:
    """Re-arm an errored (or duplicate-flagged) job when the user asks for the same tuple again."""
    job.status = PENDING
    job.requested_at = requested_at
    job.completed_at = None
    job.error_message = None
    job.retry_count = 0
    job.next_retry_at = None
    job.rate_limit_reset_at = None
    job.is_duplicate = False
    job.version = job.version + 1
    db.commit()
    db.refresh(job)
    return job


def mark_in_progress(db: Session, job: BackfillJob) -> BackfillJob:
    job.status = IN_PROGRESS
    job.error_message = None
    db.commit()
    db.refresh(job)
    return job


def mark_error(db: Session, job: BackfillJob, message: str) -> BackfillJob:
    """Flag a job as errored without touching its retry bookkeeping."""
    job.status = ERROR
    job.error_message = message
    db.commit()
    db.refresh(job)
    return job


def record_failure(
    db: Session,
    job: BackfillJob,
    *,
    message: str,
    next_retry_at: datetime | None,
) -> BackfillJob:
    job.status = ERROR
    job.error_message = message
    job.retry_count = job.retry_count + 1
    job.next_retry_at = next_retry_at if job.retry_count < job.max_retries else None
    db.commit()
    db.refresh(job)
    return job


def set_rate_limit_reset(db: Session, job: BackfillJob, reset_at: datetime) -> BackfillJob:
    job.rate_limit_reset_at = reset_at
    db.commit()
    db.refresh(job)
    return job


def mark_completed(
    db: Session,
    job: BackfillJob,
    *,
    completed_at: datetime,
    activities_processed: int | None = None,
) -> BackfillJob:
    job.status = COMPLETED
    job.completed_at = completed_at
    if activities_processed is not None:
        job.activities_processed = activities_processed
    db.commit()
    db.refresh(job)
    return job


def select_runnable_jobs(
    db: Session,
    *,
    now: datetime,
    user_id: UUID | None = None,
    batch_size: int = 10,
) -> List[BackfillJob]:
    """
    Pending jobs plus errored jobs whose retry time has come, oldest request first.
    Jobs that used up their retries are never returned.
    """
    query = db.query(BackfillJob).filter(
        BackfillJob.retry_count < BackfillJob.max_retries,
        or_(
            BackfillJob.status == PENDING,
            and_(
                BackfillJob.status == ERROR,
                or_(BackfillJob.next_retry_at.is_(None), BackfillJob.next_retry_at < now),
            ),
        ),
    )
    if user_id is not None:
        query = query.filter(BackfillJob.user_id == user_id)
    return query.order_by(BackfillJob.requested_at.asc()).limit(batch_size).all()


def user_rate_limited_until(db: Session, user_id: UUID, now: datetime) -> datetime | None:
    job = (
        db.query(BackfillJob)
        .filter(
            BackfillJob.user_id == user_id,
            BackfillJob.rate_limit_reset_at.isnot(None),
            BackfillJob.rate_limit_reset_at >= now,
        )
        .order_by(BackfillJob.rate_limit_reset_at.desc())
        .first()
    )
    return job.rate_limit_reset_at if job else None


def claim_job(
    db: Session,
    job: BackfillJob,
    *,
    expected_version: int,
    expected_status: str,
) -> bool:
    """
    Move a job to in_progress only if it still has the version and status it had
    when it was selected. Returns False when another processor got there first.

    The expected values must be captured at selection time: the job's own
    attributes reload from the database after any commit.
    """
    stmt = (
        update(BackfillJob)
        .where(
            BackfillJob.id == job.id,
            BackfillJob.version == expected_version,
            BackfillJob.status == expected_status,
            BackfillJob.status.in_([PENDING, ERROR]),
        )
        .values(
            status=IN_PROGRESS,
            version=BackfillJob.version + 1,
            rate_limit_reset_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    db.refresh(job)
    return result.rowcount == 1


def list_user_jobs(db: Session, user_id: UUID) -> List[BackfillJob]:
    return (
        db.query(BackfillJob)
        .filter(BackfillJob.user_id == user_id)
        .order_by(BackfillJob.requested_at.desc())
        .all()
    )


def jobs_with_status(db: Session, statuses: Iterable[str]) -> List[BackfillJob]:
    return (
        db.query(BackfillJob)
        .filter(BackfillJob.status.in_(list(statuses)))
        .order_by(BackfillJob.requested_at.asc())
        .all()
    )


def stuck_jobs(db: Session, *, pending_before: datetime, in_progress_before: datetime) -> List[BackfillJob]:
    return (
        db.query(BackfillJob)
        .filter(
            or_(
                and_(BackfillJob.status == PENDING, BackfillJob.requested_at < pending_before),
                and_(BackfillJob.status == IN_PROGRESS, BackfillJob.requested_at < in_progress_before),
            )
        )
        .order_by(BackfillJob.requested_at.asc())
        .all()
    )
