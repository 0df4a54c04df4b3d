# biopeak/auth/session.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import uuid
import jwt

ALGORITHM = "HS256"
AUDIENCE = "biopeak"
ISSUER = "biopeak"

def create_session_token(
    *,
    user_id: uuid.UUID,
    secret_key: str,
    expires_in_minutes: int = 60,
) -> str:
    """Sessions are minted by the auth provider; this mirrors its claims for local tooling and tests."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_in_minutes)).timestamp()),
        "aud": AUDIENCE,
        "iss": ISSUER,
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)

def decode_session_token(token: str, *, secret_key: str) -> dict:
    return jwt.decode(token, secret_key, algorithms=[ALGORITHM], audience=AUDIENCE, issuer=ISSUER)
