"""
Garmin webhook push ingestion.

Push bodies look like {"<summaryType>": [summary, ...], ...}. Each summary type
has its own handler; anything without a handler is reported and skipped rather
than guessed at.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from biopeak.db.crud.activities import upsert_activity
from biopeak.db.crud.garmin import delete_garmin_token, get_garmin_token_by_garmin_user
from biopeak.garmin.client import SUMMARY_TYPES

logger = logging.getLogger(__name__)

ACTIVITY_SUMMARY_TYPES = ("activities", "manuallyUpdatedActivities", "activityDetails")

# Garmin activity field -> (GarminActivity column, converter)
ACTIVITY_FIELDS: Dict[str, tuple[str, Callable[[Any], Any]]] = {
    "summaryId": ("summary_id", str),
    "activityName": ("name", str),
    "activityType": ("activity_type", lambda v: str(v).lower()),
    "durationInSeconds": ("duration_seconds", int),
    "distanceInMeters": ("distance_meters", float),
    "averageSpeedInMetersPerSecond": ("average_speed", float),
    "maxSpeedInMetersPerSecond": ("max_speed", float),
    "averageHeartRateInBeatsPerMinute": ("average_heartrate", int),
    "maxHeartRateInBeatsPerMinute": ("max_heartrate", int),
    "activeKilocalories": ("calories", float),
    "totalElevationGainInMeters": ("total_elevation_gain", float),
}
ACTIVITY_REQUIRED = ("userId", "activityId", "startTimeInSeconds")


@dataclass
class SummaryTally:
    accepted: int = 0
    skipped: int = 0


@dataclass
class IngestionReport:
    tallies: Dict[str, SummaryTally] = field(default_factory=dict)
    unknown_types: List[str] = field(default_factory=list)

    def tally(self, summary_type: str) -> SummaryTally:
        return self.tallies.setdefault(summary_type, SummaryTally())

    def as_dict(self) -> dict:
        return {
            "summaries": {k: {"accepted": v.accepted, "skipped": v.skipped} for k, v in self.tallies.items()},
            "unknownTypes": self.unknown_types,
        }


def map_activity(summary: Dict[str, Any]) -> Dict[str, Any] | None:
    """
    Normalize one activity summary into GarminActivity columns.
    Returns None when a required field is missing or unparsable.
    """
    # activityDetails nest the activity under "summary"
    if isinstance(summary.get("summary"), dict):
        summary = {**summary["summary"], **{k: v for k, v in summary.items() if k != "summary"}}

    missing = [k for k in ACTIVITY_REQUIRED if summary.get(k) in (None, "")]
    if missing:
        logger.warning(f"Skipping Garmin activity without {', '.join(missing)}: {summary.get('summaryId')}")
        return None

    try:
        row = {
            "garmin_activity_id": int(summary["activityId"]),
            "start_date": datetime.fromtimestamp(int(summary["startTimeInSeconds"]), tz=timezone.utc),
        }
    except (TypeError, ValueError):
        logger.warning(f"Skipping Garmin activity with malformed id/start: {summary.get('summaryId')}")
        return None

    for source, (column, convert) in ACTIVITY_FIELDS.items():
        value = summary.get(source)
        if value is None:
            continue
        try:
            row[column] = convert(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed {source}={value!r} on activity {row['garmin_activity_id']}")

    unmapped = set(summary) - set(ACTIVITY_FIELDS) - set(ACTIVITY_REQUIRED) - {
        "userAccessToken", "startTimeOffsetInSeconds", "deviceName", "manual", "samples", "laps",
    }
    if unmapped:
        logger.debug(f"Unmapped Garmin activity fields: {sorted(unmapped)}")
    return row


def _ingest_activities(db: Session, summary_type: str, summaries: List[dict], report: IngestionReport) -> None:
    tally = report.tally(summary_type)
    for summary in summaries:
        row = map_activity(summary) if isinstance(summary, dict) else None
        if row is None:
            tally.skipped += 1
            continue
        garmin_user_id = str(summary.get("userId"))
        token = get_garmin_token_by_garmin_user(db, garmin_user_id)
        if token is None:
            logger.warning(f"No BioPeak user for Garmin user {garmin_user_id}, dropping activity")
            tally.skipped += 1
            continue
        upsert_activity(db, user_id=token.user_id, **row)
        tally.accepted += 1
    db.commit()


def _ingest_deregistrations(db: Session, summary_type: str, summaries: List[dict], report: IngestionReport) -> None:
    tally = report.tally(summary_type)
    for summary in summaries:
        garmin_user_id = summary.get("userId") if isinstance(summary, dict) else None
        token = get_garmin_token_by_garmin_user(db, str(garmin_user_id)) if garmin_user_id else None
        if token is None:
            tally.skipped += 1
            continue
        delete_garmin_token(db, token.user_id)
        logger.info(f"Garmin user {garmin_user_id} deregistered, tokens removed")
        tally.accepted += 1


def _acknowledge(db: Session, summary_type: str, summaries: List[dict], report: IngestionReport) -> None:
    # Health summaries are not persisted by this service yet
    report.tally(summary_type).accepted += len(summaries)


HANDLERS: Dict[str, Callable[[Session, str, List[dict], IngestionReport], None]] = {
    **{t: _ingest_activities for t in ACTIVITY_SUMMARY_TYPES},
    **{t: _acknowledge for t in SUMMARY_TYPES if t not in ACTIVITY_SUMMARY_TYPES},
    "deregistrations": _ingest_deregistrations,
}


def ingest_push(db: Session, payload: Dict[str, Any]) -> IngestionReport:
    report = IngestionReport()
    for summary_type, summaries in payload.items():
        handler = HANDLERS.get(summary_type)
        if handler is None:
            logger.warning(f"Unknown Garmin push summary type {summary_type!r}, skipping")
            report.unknown_types.append(summary_type)
            continue
        if not isinstance(summaries, list):
            logger.warning(f"Garmin push {summary_type!r} is not a list, skipping")
            report.tally(summary_type).skipped += 1
            continue
        handler(db, summary_type, summaries, report)
    return report
