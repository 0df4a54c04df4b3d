from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Uuid
from sqlalchemy import String, DateTime, Text, UniqueConstraint, ForeignKey, Integer, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column
from biopeak.db.base import Base

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
ERROR = "error"

JOB_STATUSES = (PENDING, IN_PROGRESS, COMPLETED, ERROR)


class BackfillJob(Base):
    """
    One requested historical sync for a (user, period, summary type).
    Status flow: pending -> in_progress -> completed, with error reachable from
    pending/in_progress and re-claimable until retry_count hits max_retries.
    `version` is bumped on every claim so concurrent processors can compare-and-swap.
    """
    __tablename__ = "backfill_jobs"
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", "period_end", "summary_type",
                         name="uq_backfill_jobs_user_period_type"),
        Index("ix_backfill_jobs_status_requested", "status", "requested_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    summary_type: Mapped[str] = mapped_column(String(32), index=True, nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=PENDING, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    activities_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rate_limit_reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
