from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from tests.conftest import vendor_response


@pytest.fixture
def body():
    end = datetime.now(timezone.utc) - timedelta(days=1)
    return {
        "periodStart": (end - timedelta(days=7)).isoformat(),
        "periodEnd": end.isoformat(),
        "summaryTypes": ["dailies", "sleeps"],
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# POST /garmin/backfill
# ---------------------------------------------------------------------------

def test_request_backfill_accepted(client, connected_user, auth_headers, body):
    with patch("biopeak.garmin.client.requests.get", return_value=vendor_response(202)):
        response = client.post("/garmin/backfill", json=body, headers=auth_headers)

    assert response.status_code == 202
    data = response.json()
    assert data["message"] == "Backfill requests submitted successfully"
    assert [r["summaryType"] for r in data["results"]] == ["dailies", "sleeps"]
    assert {r["status"] for r in data["results"]} == {"requested"}
    assert {r["jobStatus"] for r in data["results"]} == {"in_progress"}
    assert set(data["period"]) == {"start", "end"}


def test_repeat_request_returns_200(client, connected_user, auth_headers, body):
    with patch("biopeak.garmin.client.requests.get", return_value=vendor_response(202)):
        client.post("/garmin/backfill", json=body, headers=auth_headers)
        response = client.post("/garmin/backfill", json=body, headers=auth_headers)

    assert response.status_code == 200
    assert {r["status"] for r in response.json()["results"]} == {"existing"}


def test_default_summary_type_is_dailies(client, connected_user, auth_headers, body):
    body.pop("summaryTypes")
    with patch("biopeak.garmin.client.requests.get", return_value=vendor_response(202)) as get:
        response = client.post("/garmin/backfill", json=body, headers=auth_headers)

    assert response.status_code == 202
    assert get.call_count == 1
    assert get.call_args.args[0].endswith("/dailies")


def test_invalid_period_is_400(client, connected_user, auth_headers, body):
    body["periodStart"], body["periodEnd"] = body["periodEnd"], body["periodStart"]
    response = client.post("/garmin/backfill", json=body, headers=auth_headers)
    assert response.status_code == 400
    assert "before end" in response.json()["detail"]


def test_unknown_summary_type_is_400(client, connected_user, auth_headers, body):
    body["summaryTypes"] = ["steps"]
    response = client.post("/garmin/backfill", json=body, headers=auth_headers)
    assert response.status_code == 400


def test_not_connected_is_409(client, user, auth_headers, body):
    response = client.post("/garmin/backfill", json=body, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "User not connected to Garmin"


def test_expired_token_is_401(client, user, connect_garmin, auth_headers, body):
    connect_garmin(user, expires_at=datetime.now(timezone.utc) - timedelta(hours=1))
    response = client.post("/garmin/backfill", json=body, headers=auth_headers)
    assert response.status_code == 401


def test_bad_session_token_is_401(client, user, body):
    response = client.post("/garmin/backfill", json=body, headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# GET /garmin/backfill
# ---------------------------------------------------------------------------

def test_status_lists_jobs_with_summary(client, connected_user, other_user, auth_headers, make_job, now):
    make_job(connected_user, summary_type="dailies", status="completed", activities_processed=4,
             requested_at=now - timedelta(hours=3))
    make_job(connected_user, summary_type="sleeps", status="error", requested_at=now - timedelta(hours=1))
    make_job(other_user, summary_type="dailies")

    response = client.get("/garmin/backfill", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    # newest request first, only the caller's jobs
    assert [j["summaryType"] for j in data["backfillStatus"]] == ["sleeps", "dailies"]
    assert data["summary"]["total"] == 2
    assert data["summary"]["completed"] == 1
    assert data["summary"]["errors"] == 1
    assert data["summary"]["totalActivitiesProcessed"] == 4


# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("path", ["/garmin/backfill/process", "/garmin/backfill/cleanup", "/garmin/backfill/recalculate"])
def test_service_endpoints_require_key(client, path):
    assert client.post(path).status_code == 403
    assert client.post(path, headers={"X-Service-Key": "wrong"}).status_code == 403


def test_process_endpoint(client, connected_user, make_job, service_headers):
    make_job(connected_user)
    with patch("biopeak.garmin.client.requests.get", return_value=vendor_response(202)):
        response = client.post("/garmin/backfill/process", json={"batchSize": 5}, headers=service_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["processed"] == 1
    assert data["totalFound"] == 1
    assert data["rateLimited"] is False


def test_process_endpoint_without_body(client, service_headers):
    response = client.post("/garmin/backfill/process", headers=service_headers)
    assert response.status_code == 200
    assert response.json()["totalFound"] == 0


def test_process_endpoint_rejects_bad_batch_size(client, service_headers):
    response = client.post("/garmin/backfill/process", json={"batchSize": 0}, headers=service_headers)
    assert response.status_code == 422


def test_maintenance_endpoints(client, service_headers):
    cleanup = client.post("/garmin/backfill/cleanup", headers=service_headers)
    recalc = client.post("/garmin/backfill/recalculate", headers=service_headers)

    assert cleanup.status_code == 200
    assert cleanup.json() == {"processed": 0, "retried": 0, "timedOut": 0, "errors": 0}
    assert recalc.status_code == 200
    assert recalc.json()["processed"] == 0


# ---------------------------------------------------------------------------
# Connection and webhook
# ---------------------------------------------------------------------------

def test_disconnect(client, connected_user, auth_headers):
    assert client.delete("/garmin/connection", headers=auth_headers).status_code == 200
    assert client.delete("/garmin/connection", headers=auth_headers).status_code == 404


def test_webhook_always_answers_200(client, connected_user):
    payload = {
        "activities": [{
            "userId": "garmin-athlete-1",
            "activityId": 55,
            "startTimeInSeconds": 1718000000,
        }],
        "mystery": [],
    }
    response = client.post("/garmin/webhook", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["summaries"]["activities"] == {"accepted": 1, "skipped": 0}
    assert data["unknownTypes"] == ["mystery"]


def test_webhook_verification(client):
    response = client.get("/garmin/webhook")
    assert response.status_code == 200
    assert response.json()["status"] == "active"
