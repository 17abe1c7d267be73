"""
Concurrent create tests against a file-backed database

Each worker gets its own session and connection, the way request handlers do.
"""
import threading
import pytest
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from app.database import Base, create_db_engine
from app.models.ontology import ACTIVE_STATUSES, Reservation, Resource, ResourceKind
from app.models.schemas import CreateReservationRequest
from app.services.errors import DateConflictError
from app.services.reservation_service import ReservationService

NOW = datetime(2025, 1, 10, 9, 0)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'reservations.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _make_rooms(session_factory, codes):
    session = session_factory()
    try:
        rooms = [
            Resource(code=code, name=f"Room {code}", kind=ResourceKind.ROOM, capacity=2,
                     base_price=Decimal("2500.00"))
            for code in codes
        ]
        session.add_all(rooms)
        session.commit()
        return [room.id for room in rooms]
    finally:
        session.close()


def _run_concurrently(session_factory, resource_ids):
    barrier = threading.Barrier(len(resource_ids))
    outcomes = []

    def worker(resource_id):
        session = session_factory()
        try:
            service = ReservationService(session, event_publisher=lambda event: None, now_provider=lambda: NOW)
            request = CreateReservationRequest(
                resource_id=resource_id,
                guest_name="Asha Rao",
                guest_phone="9876543210",
                check_in=datetime(2025, 1, 11, 14),
                check_out=datetime(2025, 1, 13, 11),
            )
            barrier.wait()
            service.create(request, "staff-1")
            outcomes.append("ok")
        except DateConflictError:
            outcomes.append("conflict")
        except Exception as e:
            outcomes.append(repr(e))
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(rid,)) for rid in resource_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return sorted(outcomes)


class TestConcurrentCreate:

    def test_same_resource_same_interval(self, session_factory):
        [room_id] = _make_rooms(session_factory, ["101"])

        outcomes = _run_concurrently(session_factory, [room_id, room_id])

        assert outcomes == ["conflict", "ok"]
        session = session_factory()
        try:
            active = session.query(Reservation).filter(
                Reservation.resource_id == room_id,
                Reservation.status.in_(ACTIVE_STATUSES),
            ).count()
            assert active == 1
        finally:
            session.close()

    def test_different_resources_both_succeed(self, session_factory):
        room_ids = _make_rooms(session_factory, ["101", "102"])

        outcomes = _run_concurrently(session_factory, room_ids)

        assert outcomes == ["ok", "ok"]
        session = session_factory()
        try:
            ids = sorted(r.id for r in session.query(Reservation).all())
            assert ids == ["RES0001", "RES0002"]
        finally:
            session.close()
