from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from biopeak.backfill.intake import any_submitted, request_backfill
from biopeak.backfill.maintenance import cleanup_stuck_backfills, recalculate_backfill_activities
from biopeak.backfill.processor import process_pending_jobs
from biopeak.backfill.status import summarize
from biopeak.core.errors import (
    BackfillValidationError,
    NotConnectedError,
    TokenError,
)
from biopeak.db.crud.backfill import list_user_jobs
from biopeak.db.models.user import User
from biopeak.db.schemas.backfill import (
    BackfillJobRead,
    BackfillRequest,
    BackfillRequestResponse,
    BackfillStatusResponse,
    CleanupResult,
    ProcessorRequest,
    ProcessorResult,
    RecalculationResult,
)
from biopeak.dependencies import get_current_user, get_db, require_service_key
from biopeak.garmin.tokens import disconnect

router = APIRouter(prefix="/garmin", tags=["Garmin Backfill"])


@router.post("/backfill", response_model=BackfillRequestResponse, response_model_by_alias=True)
def create_backfill(
    payload: BackfillRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Record a backfill per summary type and submit it to Garmin.
    202 when at least one type was submitted, 200 otherwise.
    """
    try:
        results = request_backfill(
            db,
            user.id,
            payload.period_start,
            payload.period_end,
            payload.summary_types,
        )
    except BackfillValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotConnectedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"{e}. Please reconnect to Garmin.")

    submitted = any_submitted(results)
    response.status_code = status.HTTP_202_ACCEPTED if submitted else status.HTTP_200_OK
    return BackfillRequestResponse(
        message=(
            "Backfill requests submitted successfully"
            if submitted
            else "Some backfill requests failed or already existed"
        ),
        results=results,
        period={"start": payload.period_start, "end": payload.period_end},
    )


@router.get("/backfill", response_model=BackfillStatusResponse, response_model_by_alias=True)
def get_backfill_status(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    jobs = list_user_jobs(db, user.id)
    return BackfillStatusResponse(
        backfill_status=[BackfillJobRead.model_validate(j) for j in jobs],
        summary=summarize(jobs),
    )


@router.post(
    "/backfill/process",
    response_model=ProcessorResult,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
)
def trigger_processor(
    payload: ProcessorRequest | None = None,
    db: Session = Depends(get_db),
):
    payload = payload or ProcessorRequest()
    return process_pending_jobs(db, user_id=payload.user_id, batch_size=payload.batch_size)


@router.post(
    "/backfill/cleanup",
    response_model=CleanupResult,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
)
def trigger_cleanup(db: Session = Depends(get_db)):
    return cleanup_stuck_backfills(db)


@router.post(
    "/backfill/recalculate",
    response_model=RecalculationResult,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
)
def trigger_recalculation(db: Session = Depends(get_db)):
    return recalculate_backfill_activities(db)


@router.delete("/connection")
def disconnect_garmin(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not disconnect(db, user.id):
        raise HTTPException(status_code=404, detail="No Garmin connection for this user")
    return {"message": "Garmin disconnected"}
