import logging
from datetime import datetime

import requests

from biopeak.config import (
    GARMIN_AUTH_SCHEME,
    GARMIN_BACKFILL_BASE_URL,
    GARMIN_CLIENT_ID,
    GARMIN_CLIENT_SECRET,
)
from biopeak.core.errors import VendorRejection
from biopeak.garmin.oauth import bearer_header, sign_request
from biopeak.garmin.tokens import GarminCredentials
from biopeak.utils.timeutils import to_unix_seconds

logger = logging.getLogger(__name__)

SUMMARY_TYPES = (
    "dailies",
    "epochs",
    "sleeps",
    "bodyComps",
    "stressDetails",
    "userMetrics",
    "pulseOx",
    "respiration",
    "healthSnapshot",
    "hrv",
    "bloodPressures",
    "skinTemp",
    "activities",
)

DEFAULT_SUMMARY_TYPES = ["dailies"]


def backfill_endpoint(summary_type: str) -> str:
    if summary_type not in SUMMARY_TYPES:
        raise ValueError(f"Unknown Garmin summary type: {summary_type}")
    return f"{GARMIN_BACKFILL_BASE_URL.rstrip('/')}/{summary_type}"


def _auth_headers(url: str, params: dict, credentials: GarminCredentials) -> dict:
    if GARMIN_AUTH_SCHEME == "bearer":
        return bearer_header(credentials.access_token)
    return {
        "Authorization": sign_request(
            "GET",
            url,
            consumer_key=GARMIN_CLIENT_ID,
            consumer_secret=GARMIN_CLIENT_SECRET,
            token=credentials.access_token,
            token_secret=credentials.token_secret,
            params=params,
        )
    }


def _retry_after(response) -> int | None:
    raw = response.headers.get("Retry-After")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def request_backfill(
    summary_type: str,
    period_start: datetime,
    period_end: datetime,
    credentials: GarminCredentials,
) -> None:
    """
    Ask Garmin to replay one summary type for a period. Data arrives later via webhook.
    Returns on 202; raises VendorRejection with the verbatim body otherwise.
    Network errors propagate as requests exceptions.
    """
    url = backfill_endpoint(summary_type)
    params = {
        "summaryStartTimeInSeconds": str(to_unix_seconds(period_start)),
        "summaryEndTimeInSeconds": str(to_unix_seconds(period_end)),
    }
    headers = {"Accept": "application/json", **_auth_headers(url, params, credentials)}

    logger.info(f"Requesting Garmin {summary_type} backfill {params}")
    response = requests.get(url, params=params, headers=headers, timeout=30)

    if response.status_code == 202:
        return

    logger.warning(f"Garmin {summary_type} backfill rejected: {response.status_code} {response.text}")
    raise VendorRejection(response.status_code, response.text, retry_after=_retry_after(response))
