from sqlalchemy import Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, Text, ForeignKey, UniqueConstraint
from datetime import datetime
import uuid
from biopeak.db.base import Base

class GarminToken(Base):
    """
    One live Garmin credential per app user. Token columns hold Fernet ciphertext;
    go through biopeak.db.crud.garmin to read or write them.
    """
    __tablename__ = "garmin_tokens"
    __table_args__ = (
       UniqueConstraint("user_id", name="uq_garmin_tokens_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Garmin's own user id, used to route webhook pushes
    garmin_user_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)

    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    token_secret: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    consumer_key: Mapped[str | None] = mapped_column(String, nullable=True)
    # NULL means the token does not expire (OAuth 1.0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
