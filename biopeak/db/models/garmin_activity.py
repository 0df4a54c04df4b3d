from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Uuid
from sqlalchemy import String, DateTime, Float, Integer, BigInteger, UniqueConstraint, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from biopeak.db.base import Base


class GarminActivity(Base):
    __tablename__ = "garmin_activities"
    __table_args__ = (
        UniqueConstraint("user_id", "garmin_activity_id",
                         name="uq_garmin_activities_user_activity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid,
                                               ForeignKey("users.id", ondelete="CASCADE"),
                                               index=True, nullable=False)

    garmin_activity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    summary_id: Mapped[str | None] = mapped_column(String, nullable=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    activity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)

    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    distance_meters: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_speed: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_heartrate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_heartrate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    calories: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_elevation_gain: Mapped[float | None] = mapped_column(Float, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow,
                                                 onupdate=datetime.utcnow, nullable=False)
