import secrets
import uuid

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from biopeak.db.engine import SessionLocal
from biopeak.db.models.user import User
from biopeak.auth.session import decode_session_token
from biopeak.config import APP_SECRET_KEY, SERVICE_API_KEY

# --- Database Dependency ---
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

bearer_scheme = HTTPBearer(auto_error=True)

async def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    try:
        payload = decode_session_token(creds.credentials, secret_key=APP_SECRET_KEY)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid or expired session token")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed token (missing 'sub')")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

def require_service_key(x_service_key: str | None = Header(default=None)) -> None:
    """Guard for scheduler-facing endpoints."""
    if not SERVICE_API_KEY or not x_service_key or not secrets.compare_digest(x_service_key, SERVICE_API_KEY):
        raise HTTPException(status_code=403, detail="Invalid service key")
