import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from biopeak.dependencies import get_db
from biopeak.garmin.ingestion import ingest_push

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/garmin", tags=["Garmin Webhook"])


@router.post("/webhook")
def garmin_webhook(payload: dict = Body(...), db: Session = Depends(get_db)):
    """
    Push endpoint registered with Garmin. Answers 200 even when ingestion fails;
    failures are logged and skipped summaries show up in the tally.
    """
    try:
        report = ingest_push(db, payload)
        success = True
    except Exception:
        db.rollback()
        logger.exception("Garmin webhook ingestion failed")
        report = None
        success = False

    return {
        "success": success,
        **(report.as_dict() if report else {}),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/webhook")
def garmin_webhook_verify():
    return {"status": "active", "timestamp": datetime.now(timezone.utc).isoformat()}
