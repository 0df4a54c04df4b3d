from __future__ import annotations
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from biopeak.config import (
    BACKFILL_DAILY_LIMIT_UNITS,
    BACKFILL_RATE_LIMIT_COOLDOWN_SECONDS,
    BACKFILL_RATE_LIMIT_WINDOW_SECONDS,
)
from biopeak.core.errors import RateLimitExceeded
from biopeak.db.models.rate_limit import BackfillRateLimit
from biopeak.utils.timeutils import ensure_utc


def get_or_create_ledger(db: Session, user_id: UUID, now: datetime) -> BackfillRateLimit:
    ledger = db.query(BackfillRateLimit).filter(BackfillRateLimit.user_id == user_id).first()
    if ledger is not None:
        return ledger

    ledger = BackfillRateLimit(
        user_id=user_id,
        window_started_at=now,
        consumed_units=0,
        limit_units=BACKFILL_DAILY_LIMIT_UNITS,
    )
    db.add(ledger)
    try:
        db.commit()
    except IntegrityError:
        # another processor created it first
        db.rollback()
        return db.query(BackfillRateLimit).filter(BackfillRateLimit.user_id == user_id).one()
    db.refresh(ledger)
    return ledger


def ledger_blocked_until(db: Session, user_id: UUID, now: datetime) -> datetime | None:
    ledger = db.query(BackfillRateLimit).filter(BackfillRateLimit.user_id == user_id).first()
    if ledger is None or ledger.reset_at is None:
        return None
    reset_at = ensure_utc(ledger.reset_at)
    return reset_at if reset_at > now else None


def _roll_window(db: Session, ledger: BackfillRateLimit, now: datetime) -> None:
    window = timedelta(seconds=BACKFILL_RATE_LIMIT_WINDOW_SECONDS)
    started = ensure_utc(ledger.window_started_at)
    if started + window > now:
        return
    db.execute(
        update(BackfillRateLimit)
        .where(
            BackfillRateLimit.id == ledger.id,
            BackfillRateLimit.window_started_at == ledger.window_started_at,
        )
        .values(window_started_at=now, consumed_units=0, reset_at=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(ledger)


def try_consume(db: Session, user_id: UUID, units: int, now: datetime) -> bool:
    """
    Reserve `units` day-units for the user in the current window.
    The check and the increment are one conditional UPDATE.
    """
    ledger = get_or_create_ledger(db, user_id, now)
    _roll_window(db, ledger, now)

    result = db.execute(
        update(BackfillRateLimit)
        .where(
            BackfillRateLimit.id == ledger.id,
            BackfillRateLimit.consumed_units + units <= BackfillRateLimit.limit_units,
        )
        .values(consumed_units=BackfillRateLimit.consumed_units + units)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def refund(db: Session, user_id: UUID, units: int) -> None:
    """Give back units reserved for a vendor call that did not go through."""
    db.execute(
        update(BackfillRateLimit)
        .where(BackfillRateLimit.user_id == user_id)
        .values(
            consumed_units=case(
                (BackfillRateLimit.consumed_units >= units, BackfillRateLimit.consumed_units - units),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()


def block_until(db: Session, user_id: UUID, reset_at: datetime) -> None:
    db.execute(
        update(BackfillRateLimit)
        .where(BackfillRateLimit.user_id == user_id)
        .values(reset_at=reset_at)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def reserve_units(db: Session, user_id: UUID, units: int, now: datetime) -> None:
    """
    try_consume, but on refusal start the cool-down on the ledger and raise
    RateLimitExceeded carrying the time the user may be retried.
    """
    if try_consume(db, user_id, units, now):
        return
    reset_at = now + timedelta(seconds=BACKFILL_RATE_LIMIT_COOLDOWN_SECONDS)
    block_until(db, user_id, reset_at)
    raise RateLimitExceeded(reset_at)
