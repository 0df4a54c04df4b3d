"""
Shared fixtures: a fresh in-memory SQLite database per test, a connected user,
a job factory and a TestClient wired to the test session.
"""

import os

# Configure before biopeak.config is imported anywhere
os.environ["SQLALCHEMY_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["APP_SECRET_KEY"] = "test-secret-key"
os.environ["SERVICE_API_KEY"] = "test-service-key"
os.environ["GARMIN_CLIENT_ID"] = "test-client-id"
os.environ["GARMIN_CLIENT_SECRET"] = "test-client-secret"
os.environ["GARMIN_AUTH_SCHEME"] = "oauth1"

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import biopeak.db.models  # noqa: F401  registers every table on Base.metadata
from biopeak.auth.session import create_session_token
from biopeak.config import APP_SECRET_KEY, SERVICE_API_KEY
from biopeak.db.base import Base
from biopeak.db.crud.garmin import upsert_garmin_token
from biopeak.db.models.backfill_job import BackfillJob, PENDING
from biopeak.db.models.user import User
from biopeak.db.schemas.garmin import GarminTokenCreate
from biopeak.dependencies import get_db

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def vendor_response(status_code: int = 202, text: str = "", headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {}
    return response


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    TestingSession = sessionmaker(bind=db_engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, auth_user_id: str) -> User:
    user = User(auth_user_id=auth_user_id, email=f"{auth_user_id}@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db_session):
    return _make_user(db_session, "athlete-1")


@pytest.fixture
def other_user(db_session):
    return _make_user(db_session, "athlete-2")


@pytest.fixture
def connect_garmin(db_session):
    def _connect(user, **overrides):
        payload = {
            "access_token": "access-token",
            "token_secret": "token-secret",
            "garmin_user_id": f"garmin-{user.auth_user_id}",
            "consumer_key": "test-client-id",
            "expires_at": None,
            "refresh_token": None,
        }
        payload.update(overrides)
        return upsert_garmin_token(db_session, user.id, GarminTokenCreate(**payload))

    return _connect


@pytest.fixture
def connected_user(user, connect_garmin):
    connect_garmin(user)
    return user


@pytest.fixture
def make_job(db_session):
    def _make(user, **overrides):
        fields = {
            "period_start": NOW - timedelta(days=14),
            "period_end": NOW - timedelta(days=7),
            "summary_type": "dailies",
            "status": PENDING,
            "requested_at": NOW - timedelta(hours=1),
            "activities_processed": 0,
            "retry_count": 0,
            "max_retries": 3,
            "is_duplicate": False,
            "version": 0,
        }
        fields.update(overrides)
        job = BackfillJob(user_id=user.id, **fields)
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job

    return _make


@pytest.fixture
def client(db_session):
    from biopeak.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user):
    token = create_session_token(user_id=user.id, secret_key=APP_SECRET_KEY)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def service_headers():
    return {"X-Service-Key": SERVICE_API_KEY}
