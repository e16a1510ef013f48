"""
Pytest configuration and fixtures
"""

import os

# Must be set before tripdesk.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from tripdesk.core.rate_limiting import limiter
from tripdesk.db.database import build_engine, get_db
from tripdesk.db.models import Base
from tripdesk.main import app

API = "/api/v1"

limiter.enabled = False


@pytest.fixture(scope="function")
def test_engine():
    """Fresh in-memory SQLite database per test"""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine):
    """Database session for tests"""
    session_maker = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    session = session_maker()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(db_session):
    """Create test client with database override"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# API data builders
# ---------------------------------------------------------------------------

@pytest.fixture
def operator(client):
    response = client.post(f"{API}/operators", json={
        "user_id": "op-user-1",
        "company_name": "Alpine Trails",
        "contact_email": "ops@alpine.example",
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def make_package(client, operator):
    """Create a package through the API; keyword arguments override defaults"""

    def _make(**overrides):
        payload = {
            "tour_operator_id": operator["id"],
            "title": "Glacier Hike",
            "description": "Guided walk on the glacier",
            "type": "ACTIVITY",
            "status": "ACTIVE",
            "price_adult": 100.0,
            "price_child": 60.0,
            "destinations": ["Interlaken"],
            "duration_days": 1,
            "duration_hours": 6,
            "recommended_for_trip_types": ["ADVENTURE"],
            "rating": 4.5,
        }
        payload.update(overrides)
        response = client.post(f"{API}/packages", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def make_lead(client):
    """Create an agent lead through the API; keyword arguments override defaults"""

    def _make(**overrides):
        start = date(2030, 6, 1)
        payload = {
            "agent_id": "agent-1",
            "customer_name": "Maya Keller",
            "customer_email": "maya@example.com",
            "destination": "Interlaken",
            "budget": 2000.0,
            "trip_type": "ADVENTURE",
            "travelers": 2,
            "duration": 3,
            "preferred_start_date": start.isoformat(),
            "preferred_end_date": (start + timedelta(days=2)).isoformat(),
        }
        payload.update(overrides)
        response = client.post(f"{API}/leads", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make
