"""
Pytest configuration and fixtures for LeadLine tests.
"""

import os

# Set test environment before importing leadline modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FIREBASE_PROJECT_ID"] = "leadline-test"
os.environ["REDIS_URL"] = "redis://localhost:6399/0"

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from leadline import rate_limiter
from leadline.auth import get_current_user, get_optional_user
from leadline.database import Base, SessionLocal, engine, get_db
from leadline.main import app
from leadline.models import ROLE_ADMIN, ROLE_CUSTOMER, Business, User
from leadline.routes.consent import sms_opt_in_rate_limit


@pytest.fixture
def db_session():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limiter(monkeypatch):
    """Memory-only rate limiting with empty counters."""
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: None)
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


@pytest.fixture
def auth_state():
    """Holds the user the identity dependencies resolve to (None = signed out)."""
    return {"user": None}


@pytest.fixture
def client(db_session, auth_state):
    def override_get_db():
        yield db_session

    def override_optional_user():
        return auth_state["user"]

    def override_current_user():
        if auth_state["user"] is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return auth_state["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optional_user] = override_optional_user
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[sms_opt_in_rate_limit] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_business(db_session):
    def _make(**fields):
        defaults = {"name": "Cool Air Co", "industry": "HVAC", "service_areas": ["Austin"]}
        defaults.update(fields)
        business = Business(**defaults)
        db_session.add(business)
        db_session.commit()
        db_session.refresh(business)
        return business

    return _make


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=ROLE_CUSTOMER, business=None, business_id=None):
        counter["n"] += 1
        user = User(
            firebase_uid=f"uid-{counter['n']}",
            email=f"owner{counter['n']}@example.com",
            role=role,
            business_id=business.id if business is not None else business_id,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def sign_in(auth_state):
    def _sign_in(user):
        auth_state["user"] = user
        return user

    return _sign_in


@pytest.fixture
def admin_user(make_user):
    return make_user(role=ROLE_ADMIN)
