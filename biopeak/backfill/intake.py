"""
Backfill request intake.

Validates a user's request for historical Garmin data, records one job per
summary type (deduplicated on user, period and type) and immediately asks
Garmin to start the backfill. Retries are left to the processor.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Sequence
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from biopeak.config import BACKFILL_MAX_LOOKBACK_MONTHS, BACKFILL_MAX_PERIOD_DAYS
from biopeak.core.errors import BackfillValidationError, VendorRejection
from biopeak.db.crud import backfill as backfill_crud
from biopeak.db.models.backfill_job import BackfillJob, ERROR, IN_PROGRESS
from biopeak.db.schemas.backfill import BackfillRequestResult
from biopeak.garmin import client as garmin_client
from biopeak.garmin.tokens import GarminCredentials, ensure_valid_token
from biopeak.utils.timeutils import ensure_utc, months_ago, utcnow

logger = logging.getLogger(__name__)


def validate_period(period_start: datetime, period_end: datetime, now: datetime) -> None:
    if period_start >= period_end:
        raise BackfillValidationError("Start date must be before end date")
    if period_end - period_start > timedelta(days=BACKFILL_MAX_PERIOD_DAYS):
        raise BackfillValidationError(
            f"Period cannot exceed {BACKFILL_MAX_PERIOD_DAYS} days per backfill request"
        )
    if period_start > now:
        raise BackfillValidationError("Start date cannot be in the future")
    if period_end > now:
        raise BackfillValidationError("End date cannot be in the future")
    if period_start < months_ago(now, BACKFILL_MAX_LOOKBACK_MONTHS):
        raise BackfillValidationError(
            f"Start date cannot be more than {BACKFILL_MAX_LOOKBACK_MONTHS} months in the past"
        )


def validate_summary_types(summary_types: Sequence[str]) -> List[str]:
    if not summary_types:
        raise BackfillValidationError("No summary types provided")
    unknown = [t for t in summary_types if t not in garmin_client.SUMMARY_TYPES]
    if unknown:
        raise BackfillValidationError(f"Unknown summary types: {', '.join(unknown)}")
    # keep request order, drop repeats
    return list(dict.fromkeys(summary_types))


def _start_vendor_backfill(db: Session, job: BackfillJob, credentials: GarminCredentials) -> str:
    try:
        garmin_client.request_backfill(job.summary_type, job.period_start, job.period_end, credentials)
    except VendorRejection as e:
        backfill_crud.mark_error(db, job, e.body)
        return f"{job.summary_type} API error: {e.status_code} - {e.body}"
    except requests.exceptions.RequestException as e:
        backfill_crud.mark_error(db, job, f"Request failed: {e}")
        return f"{job.summary_type} request failed: {e}"

    backfill_crud.mark_in_progress(db, job)
    return f"{job.summary_type} backfill request submitted. Data will arrive via webhooks."


def request_backfill(
    db: Session,
    user_id: UUID,
    period_start: datetime,
    period_end: datetime,
    summary_types: Sequence[str],
    now: datetime | None = None,
) -> List[BackfillRequestResult]:
    """
    Record and submit a backfill for each summary type.

    Raises BackfillValidationError, NotConnectedError or a TokenError before any
    row is written. Each type then independently yields `existing` (a live job
    already covers it) or `requested`.
    """
    now = now or utcnow()
    period_start = ensure_utc(period_start)
    period_end = ensure_utc(period_end)

    validate_period(period_start, period_end, now)
    types = validate_summary_types(summary_types)
    credentials = ensure_valid_token(db, user_id, now=now)

    results: List[BackfillRequestResult] = []
    for summary_type in types:
        job = backfill_crud.find_job(
            db,
            user_id=user_id,
            period_start=period_start,
            period_end=period_end,
            summary_type=summary_type,
        )
        if job is not None and job.status != ERROR and not job.is_duplicate:
            results.append(BackfillRequestResult(
                summary_type=summary_type,
                status="existing",
                job_id=job.id,
                job_status=job.status,
                message=f"Backfill already exists for {summary_type}",
            ))
            continue

        if job is None:
            job = backfill_crud.create_job(
                db,
                user_id=user_id,
                period_start=period_start,
                period_end=period_end,
                summary_type=summary_type,
                requested_at=now,
            )
        else:
            job = backfill_crud.reset_job_for_request(db, job, requested_at=now)

        message = _start_vendor_backfill(db, job, credentials)
        logger.info(f"Backfill {job.id} for user {user_id} ({summary_type}) -> {job.status}")
        results.append(BackfillRequestResult(
            summary_type=summary_type,
            status="requested",
            job_id=job.id,
            job_status=job.status,
            message=message,
        ))

    return results


def any_submitted(results: Sequence[BackfillRequestResult]) -> bool:
    return any(r.status == "requested" and r.job_status == IN_PROGRESS for r in results)
