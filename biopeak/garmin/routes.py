# biopeak/garmin/routes.py
from fastapi import APIRouter
from .backfill_routes import router as backfill_router
from .webhook import router as webhook_router

router = APIRouter()
router.include_router(backfill_router)    # /garmin/backfill, /garmin/connection
router.include_router(webhook_router)     # /garmin/webhook
