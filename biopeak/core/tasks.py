from uuid import UUID

from biopeak.backfill.maintenance import cleanup_stuck_backfills as run_cleanup
from biopeak.backfill.maintenance import recalculate_backfill_activities as run_recalculation
from biopeak.backfill.processor import process_pending_jobs
from biopeak.config import BACKFILL_BATCH_SIZE
from biopeak.core.celery_app import celery_app
from biopeak.db import engine as db_engine


@celery_app.task(name="biopeak.core.tasks.process_backfill_jobs")
def process_backfill_jobs(user_id: str | None = None, batch_size: int = BACKFILL_BATCH_SIZE) -> dict:
    """
    One processor pass. Jobs not reached before the task's time limit simply
    wait for the next beat.
    """
    db = db_engine.SessionLocal()
    try:
        result = process_pending_jobs(
            db,
            user_id=UUID(user_id) if user_id else None,
            batch_size=batch_size,
        )
        return result.model_dump(mode="json", by_alias=True)
    finally:
        db.close()


@celery_app.task(name="biopeak.core.tasks.recalculate_backfill_activities")
def recalculate_backfill_activities() -> dict:
    db = db_engine.SessionLocal()
    try:
        result = run_recalculation(db)
        return result.model_dump(mode="json", by_alias=True)
    finally:
        db.close()


@celery_app.task(name="biopeak.core.tasks.cleanup_stuck_backfills")
def cleanup_stuck_backfills() -> dict:
    db = db_engine.SessionLocal()
    try:
        result = run_cleanup(db)
        return result.model_dump(mode="json", by_alias=True)
    finally:
        db.close()
