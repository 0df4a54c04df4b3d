from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import biopeak.db.models
from biopeak.db.base import Base
from biopeak.db.engine import engine
from biopeak.garmin.routes import router as garmin_router
import logging

logger = logging.getLogger(__name__)


app = FastAPI(title="BioPeak")
app.include_router(garmin_router)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:8080",
        ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_event():
    Base.metadata.create_all(bind=engine)
    logger.info("BioPeak backfill service started")


@app.get("/health")
def health():
    return {"status": "ok"}
