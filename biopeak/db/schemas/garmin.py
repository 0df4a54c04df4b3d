from datetime import datetime
from pydantic import BaseModel

class GarminTokenBase(BaseModel):
    garmin_user_id: str | None = None
    consumer_key: str | None = None
    expires_at: datetime | None = None

class GarminTokenCreate(GarminTokenBase):
    access_token: str
    token_secret: str
    refresh_token: str | None = None

class GarminTokenPlain(GarminTokenCreate):
    """Decrypted view of a stored token row."""
    user_id: str
