"""
Overlap detection tests
"""
import pytest
from datetime import datetime
from decimal import Decimal

from app.models.ontology import Occupant, Reservation, ReservationStatus
from app.services.conflict_service import ConflictDetector, intervals_overlap
from app.services.errors import DateConflictError, ErrorCode

_counter = {"n": 0}


def _make_reservation(db, resource, check_in, check_out, status=ReservationStatus.CONFIRMED):
    _counter["n"] += 1
    n = _counter["n"]
    occupant = Occupant(name="Asha Rao", phone="9876543210")
    db.add(occupant)
    db.flush()
    reservation = Reservation(
        id=f"RES{n:04d}",
        reference=f"REF{n:05d}",
        resource_id=resource.id,
        occupant_id=occupant.id,
        check_in=check_in,
        check_out=check_out,
        base_rate=resource.base_price,
        total=Decimal("0"),
        status=status,
    )
    db.add(reservation)
    db.commit()
    return reservation


class TestIntervalsOverlap:

    def test_overlapping(self):
        assert intervals_overlap(datetime(2025, 1, 1), datetime(2025, 1, 3),
                                 datetime(2025, 1, 2), datetime(2025, 1, 4))

    def test_contained(self):
        assert intervals_overlap(datetime(2025, 1, 1), datetime(2025, 1, 10),
                                 datetime(2025, 1, 3), datetime(2025, 1, 4))

    def test_touching_boundary_is_not_overlap(self):
        assert not intervals_overlap(datetime(2025, 1, 1), datetime(2025, 1, 3),
                                     datetime(2025, 1, 3), datetime(2025, 1, 5))

    def test_disjoint(self):
        assert not intervals_overlap(datetime(2025, 1, 1), datetime(2025, 1, 2),
                                     datetime(2025, 1, 5), datetime(2025, 1, 6))


class TestConflictDetector:

    def test_detects_overlap(self, db_session, sample_room):
        existing = _make_reservation(db_session, sample_room, datetime(2025, 3, 1, 14), datetime(2025, 3, 3, 11))
        detector = ConflictDetector(db_session)

        conflict = detector.find_conflict(sample_room.id, datetime(2025, 3, 2, 14), datetime(2025, 3, 4, 11))

        assert conflict is not None
        assert conflict.id == existing.id

    def test_same_day_turnover_allowed(self, db_session, sample_room):
        _make_reservation(db_session, sample_room, datetime(2025, 3, 1, 14), datetime(2025, 3, 3, 11))
        detector = ConflictDetector(db_session)

        assert not detector.has_conflict(sample_room.id, datetime(2025, 3, 3, 11), datetime(2025, 3, 4, 11))

    def test_other_resource_ignored(self, db_session, sample_room, second_room):
        _make_reservation(db_session, sample_room, datetime(2025, 3, 1), datetime(2025, 3, 3))
        detector = ConflictDetector(db_session)

        assert not detector.has_conflict(second_room.id, datetime(2025, 3, 1), datetime(2025, 3, 3))

    @pytest.mark.parametrize("status", [ReservationStatus.CANCELLED, ReservationStatus.CHECKED_OUT])
    def test_terminal_reservations_ignored(self, db_session, sample_room, status):
        _make_reservation(db_session, sample_room, datetime(2025, 3, 1), datetime(2025, 3, 3), status)
        detector = ConflictDetector(db_session)

        assert not detector.has_conflict(sample_room.id, datetime(2025, 3, 1), datetime(2025, 3, 3))

    @pytest.mark.parametrize("status", [
        ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN,
    ])
    def test_active_reservations_block(self, db_session, sample_room, status):
        _make_reservation(db_session, sample_room, datetime(2025, 3, 1), datetime(2025, 3, 3), status)
        detector = ConflictDetector(db_session)

        assert detector.has_conflict(sample_room.id, datetime(2025, 3, 2), datetime(2025, 3, 5))

    def test_exclude_self(self, db_session, sample_room):
        existing = _make_reservation(db_session, sample_room, datetime(2025, 3, 1), datetime(2025, 3, 3))
        detector = ConflictDetector(db_session)

        assert not detector.has_conflict(sample_room.id, datetime(2025, 3, 1), datetime(2025, 3, 4),
                                         exclude_id=existing.id)

    def test_find_conflicts_ordered_by_check_in(self, db_session, sample_room):
        later = _make_reservation(db_session, sample_room, datetime(2025, 3, 5), datetime(2025, 3, 7))
        earlier = _make_reservation(db_session, sample_room, datetime(2025, 3, 1), datetime(2025, 3, 3))
        detector = ConflictDetector(db_session)

        conflicts = detector.find_conflicts(sample_room.id, datetime(2025, 2, 28), datetime(2025, 3, 10))

        assert [c.id for c in conflicts] == [earlier.id, later.id]

    def test_ensure_no_conflict_message(self, db_session, sample_room):
        existing = _make_reservation(db_session, sample_room, datetime(2025, 3, 1, 14), datetime(2025, 3, 3, 11))
        detector = ConflictDetector(db_session)

        with pytest.raises(DateConflictError) as exc_info:
            detector.ensure_no_conflict(sample_room, datetime(2025, 3, 2), datetime(2025, 3, 4))

        error = exc_info.value
        assert error.code == ErrorCode.DATE_CONFLICT
        assert "Room 101 is already booked" in error.message
        assert "2025-03-01 14:00" in error.message
        assert error.context["conflicting_reservation_id"] == existing.id
