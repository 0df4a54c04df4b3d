from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Uuid
from sqlalchemy import DateTime, Integer, UniqueConstraint, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from biopeak.db.base import Base


class BackfillRateLimit(Base):
    """
    Per-user day-unit ledger for the Garmin backfill quota.
    consumed_units only ever moves through conditional UPDATEs (see crud.rate_limit).
    """
    __tablename__ = "backfill_rate_limits"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_backfill_rate_limits_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    window_started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    consumed_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    limit_units: Mapped[int] = mapped_column(Integer, nullable=False)
    reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
