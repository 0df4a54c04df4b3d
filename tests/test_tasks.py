from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.orm import sessionmaker

from biopeak.core import tasks
from biopeak.core.celery_app import celery_app
from tests.conftest import vendor_response


@pytest.fixture
def task_sessions(db_engine):
    factory = sessionmaker(bind=db_engine, autoflush=False, autocommit=False)
    with patch("biopeak.core.tasks.db_engine.SessionLocal", factory):
        yield factory


def test_beat_schedule_covers_every_pass():
    scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
    assert scheduled == {
        "biopeak.core.tasks.process_backfill_jobs",
        "biopeak.core.tasks.recalculate_backfill_activities",
        "biopeak.core.tasks.cleanup_stuck_backfills",
    }


def test_process_task_returns_json_result(task_sessions, connected_user, make_job, now):
    make_job(connected_user, requested_at=now - timedelta(hours=1))

    with patch("biopeak.garmin.client.requests.get", return_value=vendor_response(202)):
        result = tasks.process_backfill_jobs(user_id=str(connected_user.id))

    assert result == {
        "processed": 1,
        "errors": 0,
        "rateLimited": False,
        "rateLimitReset": None,
        "totalFound": 1,
    }


def test_maintenance_tasks_run_on_empty_database(task_sessions):
    assert tasks.cleanup_stuck_backfills() == {"processed": 0, "retried": 0, "timedOut": 0, "errors": 0}
    assert tasks.recalculate_backfill_activities() == {
        "processed": 0,
        "completed": 0,
        "errors": 0,
        "details": [],
    }
