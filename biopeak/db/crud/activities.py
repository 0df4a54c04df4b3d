from datetime import datetime
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
from biopeak.db.models.garmin_activity import GarminActivity


def upsert_activity(db: Session, *, user_id: UUID, garmin_activity_id: int, **fields) -> GarminActivity:
    """
    Insert or update one activity keyed by (user_id, garmin_activity_id).
    Caller commits.
    """
    existing = (
        db.query(GarminActivity)
        .filter(
            GarminActivity.user_id == user_id,
            GarminActivity.garmin_activity_id == garmin_activity_id,
        )
        .first()
    )
    if existing is None:
        existing = GarminActivity(user_id=user_id, garmin_activity_id=garmin_activity_id)
        db.add(existing)

    for key, value in fields.items():
        setattr(existing, key, value)
    existing.updated_at = datetime.utcnow()
    return existing


def count_activities_in_period(db: Session, *, user_id: UUID, start: datetime, end: datetime) -> int:
    return (
        db.query(func.count(GarminActivity.id))
        .filter(
            GarminActivity.user_id == user_id,
            GarminActivity.start_date >= start,
            GarminActivity.start_date <= end,
        )
        .scalar()
        or 0
    )
