from datetime import datetime
from sqlalchemy.orm import Session
from biopeak.db.models.garmin_token import GarminToken
from biopeak.db.schemas.garmin import GarminTokenCreate, GarminTokenPlain
from biopeak.utils.crypto import encrypt_text, decrypt_text, encrypt_optional, decrypt_optional
from biopeak.utils.timeutils import ensure_utc
from uuid import UUID


def get_garmin_token(db: Session, user_id: UUID) -> GarminToken | None:
    return db.query(GarminToken).filter(GarminToken.user_id == user_id).first()


def get_garmin_token_by_garmin_user(db: Session, garmin_user_id: str) -> GarminToken | None:
    return db.query(GarminToken).filter(GarminToken.garmin_user_id == garmin_user_id).first()


def decrypt_token(row: GarminToken) -> GarminTokenPlain:
    return GarminTokenPlain(
        user_id=str(row.user_id),
        garmin_user_id=row.garmin_user_id,
        consumer_key=row.consumer_key,
        expires_at=ensure_utc(row.expires_at),
        access_token=decrypt_text(row.access_token),
        token_secret=decrypt_text(row.token_secret),
        refresh_token=decrypt_optional(row.refresh_token),
    )


def upsert_garmin_token(db: Session, user_id: UUID, payload: GarminTokenCreate) -> GarminToken:
    """Create the user's token row or overwrite it in place (one row per user)."""
    tok = get_garmin_token(db, user_id)
    if tok is None:
        tok = GarminToken(user_id=user_id)
        db.add(tok)

    tok.access_token = encrypt_text(payload.access_token)
    tok.token_secret = encrypt_text(payload.token_secret)
    tok.refresh_token = encrypt_optional(payload.refresh_token)
    tok.garmin_user_id = payload.garmin_user_id or tok.garmin_user_id
    tok.consumer_key = payload.consumer_key or tok.consumer_key
    tok.expires_at = payload.expires_at

    db.commit()
    db.refresh(tok)
    return tok


def store_refreshed_token(
    db: Session,
    tok: GarminToken,
    *,
    access_token: str,
    refresh_token: str | None,
    expires_at: datetime,
) -> GarminToken:
    # token_secret is the OAuth 1.0 secret and does not rotate on refresh
    tok.access_token = encrypt_text(access_token)
    if refresh_token:
        tok.refresh_token = encrypt_text(refresh_token)
    tok.expires_at = expires_at
    db.commit()
    db.refresh(tok)
    return tok


def delete_garmin_token(db: Session, user_id: UUID) -> bool:
    tok = get_garmin_token(db, user_id)
    if tok is None:
        return False
    db.delete(tok)
    db.commit()
    return True
