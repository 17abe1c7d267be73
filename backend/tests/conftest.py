"""
Pytest configuration and shared fixtures
"""
import os

# The application engine must not touch a file database during tests
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, create_db_engine, get_db
from app.models import ontology
from app.models.ontology import Resource, ResourceKind, ResourceStatus
from app.security.auth import create_access_token
from app.services.event_bus import event_bus
from app.main import app


def _day_at(offset: int, hour: int = 0) -> datetime:
    return datetime.combine(date.today() + timedelta(days=offset), time(hour))


@pytest.fixture
def day_at():
    """Today + offset days at the given hour"""
    return _day_at


@pytest.fixture(scope="function")
def db_engine():
    """In-memory database engine with the production transaction settings"""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Database session"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Test client sharing the test session"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    event_bus.clear_subscribers()


# ============== Auth fixtures ==============

@pytest.fixture
def staff_token():
    return create_access_token("staff-1", "receptionist")


@pytest.fixture
def auth_headers(staff_token):
    """Bearer header of a staff member"""
    return {"Authorization": f"Bearer {staff_token}"}


# ============== Entity fixtures ==============

@pytest.fixture
def published_events():
    """Collects events passed to an injected publisher"""
    return []


@pytest.fixture
def sample_room(db_session):
    room = Resource(
        code="101",
        name="Deluxe 101",
        kind=ResourceKind.ROOM,
        category="DELUXE",
        floor=1,
        capacity=2,
        base_price=Decimal("2500.00"),
        status=ResourceStatus.AVAILABLE,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def second_room(db_session):
    room = Resource(
        code="102",
        name="Deluxe 102",
        kind=ResourceKind.ROOM,
        category="DELUXE",
        floor=1,
        capacity=3,
        base_price=Decimal("3000.00"),
        status=ResourceStatus.AVAILABLE,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_hall(db_session):
    hall = Resource(
        code="GRAND",
        name="Grand Hall",
        kind=ResourceKind.HALL,
        category="BANQUET",
        capacity=200,
        base_price=Decimal("50000.00"),
        status=ResourceStatus.AVAILABLE,
    )
    db_session.add(hall)
    db_session.commit()
    db_session.refresh(hall)
    return hall
