import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from biopeak.config import (
    GARMIN_CLIENT_ID,
    GARMIN_CLIENT_SECRET,
    GARMIN_TOKEN_URL,
    TOKEN_REFRESH_MARGIN_MINUTES,
)
from biopeak.core.errors import NotConnectedError, RefreshFailedError, TokenExpiredError
from biopeak.db.crud.garmin import (
    decrypt_token,
    delete_garmin_token,
    get_garmin_token,
    store_refreshed_token,
)
from biopeak.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 86400


@dataclass(frozen=True)
class GarminCredentials:
    access_token: str
    token_secret: str


def _unwrap_refresh_token(refresh_token: str) -> tuple[str, str | None]:
    """
    Garmin hands out refresh tokens as base64 JSON
    {"refreshTokenValue": ..., "garminGuid": ...}. Plain tokens pass through.
    """
    try:
        envelope = json.loads(base64.b64decode(refresh_token, validate=True))
    except (binascii.Error, ValueError):
        return refresh_token, None
    if not isinstance(envelope, dict) or "refreshTokenValue" not in envelope:
        return refresh_token, None
    return envelope["refreshTokenValue"], envelope.get("garminGuid")


def _wrap_refresh_token(new_value: str, garmin_guid: str | None) -> str:
    if garmin_guid is None:
        return new_value
    # already an envelope
    if _unwrap_refresh_token(new_value)[1] is not None:
        return new_value
    envelope = {"refreshTokenValue": new_value, "garminGuid": garmin_guid}
    return base64.b64encode(json.dumps(envelope).encode("utf-8")).decode("utf-8")


def refresh_garmin_token(refresh_token: str) -> Dict[str, Any]:
    """
    POST grant_type=refresh_token to Garmin's token endpoint.
    Returns the decoded token payload; raises RefreshFailedError on any failure.
    """
    value, _ = _unwrap_refresh_token(refresh_token)

    credentials = f"{GARMIN_CLIENT_ID}:{GARMIN_CLIENT_SECRET}"
    encoded_credentials = base64.b64encode(credentials.encode()).decode()

    headers = {
        "Authorization": f"Basic {encoded_credentials}",
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
    }
    refresh_data = {
        "grant_type": "refresh_token",
        "refresh_token": value,
    }

    try:
        response = requests.post(GARMIN_TOKEN_URL, headers=headers, data=refresh_data, timeout=30)
    except requests.exceptions.RequestException as e:
        raise RefreshFailedError(f"Failed to connect to Garmin token endpoint: {e}") from e

    if response.status_code != 200:
        raise RefreshFailedError(f"Token refresh failed: {response.status_code} {response.text}")

    try:
        payload = response.json()
    except ValueError as e:
        raise RefreshFailedError("Invalid token response format") from e

    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise RefreshFailedError("Token response missing access_token")
    return payload


def ensure_valid_token(db: Session, user_id: UUID, now: datetime | None = None) -> GarminCredentials:
    """
    Return usable credentials for the user, refreshing them first when they expire
    within TOKEN_REFRESH_MARGIN_MINUTES.

    Concurrent callers for the same user may both refresh; the last write wins.
    """
    now = now or utcnow()
    row = get_garmin_token(db, user_id)
    if row is None:
        raise NotConnectedError(user_id)

    tok = decrypt_token(row)
    if tok.expires_at is None:
        return GarminCredentials(tok.access_token, tok.token_secret)

    minutes_until_expiry = (tok.expires_at - now).total_seconds() / 60
    if minutes_until_expiry > TOKEN_REFRESH_MARGIN_MINUTES:
        return GarminCredentials(tok.access_token, tok.token_secret)

    logger.info(f"Garmin token for user {user_id} expires in {minutes_until_expiry:.0f} min, refreshing")
    if not tok.refresh_token:
        raise TokenExpiredError()

    payload = refresh_garmin_token(tok.refresh_token)

    expires_in = payload.get("expires_in")
    if not isinstance(expires_in, (int, float)):
        expires_in = DEFAULT_EXPIRES_IN
    new_refresh = payload.get("refresh_token")
    if new_refresh:
        _, guid = _unwrap_refresh_token(tok.refresh_token)
        new_refresh = _wrap_refresh_token(new_refresh, guid)

    store_refreshed_token(
        db,
        row,
        access_token=payload["access_token"],
        refresh_token=new_refresh,
        expires_at=now + timedelta(seconds=int(expires_in)),
    )
    logger.info(f"Garmin token refreshed for user {user_id}")
    return GarminCredentials(payload["access_token"], tok.token_secret)


def disconnect(db: Session, user_id: UUID) -> bool:
    removed = delete_garmin_token(db, user_id)
    if removed:
        logger.info(f"Garmin disconnected for user {user_id}")
    return removed
