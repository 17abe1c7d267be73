"""
Conflict service - overlap detection between reservations of one resource

Intervals are half-open: [a, b) and [c, d) overlap iff a < d and c < b, so a
check-out equal to the next check-in is a same-day turnover, not a conflict.
Must run inside the transaction that inserts or moves the reservation.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.ontology import ACTIVE_STATUSES, Reservation, Resource
from app.services.errors import DateConflictError


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


class ConflictDetector:
    """Finds non-terminal reservations overlapping a candidate interval"""

    def __init__(self, db: Session):
        self.db = db

    def _overlapping(self, resource_id: int, check_in: datetime, check_out: datetime,
                     exclude_id: Optional[str] = None):
        query = self.db.query(Reservation).filter(
            Reservation.resource_id == resource_id,
            Reservation.status.in_(ACTIVE_STATUSES),
            Reservation.check_in < check_out,
            Reservation.check_out > check_in,
        )
        if exclude_id:
            query = query.filter(Reservation.id != exclude_id)
        return query.order_by(Reservation.check_in)

    def find_conflict(self, resource_id: int, check_in: datetime, check_out: datetime,
                      exclude_id: Optional[str] = None) -> Optional[Reservation]:
        """The earliest overlapping reservation, or None"""
        return self._overlapping(resource_id, check_in, check_out, exclude_id).first()

    def find_conflicts(self, resource_id: int, check_in: datetime, check_out: datetime,
                       exclude_id: Optional[str] = None) -> List[Reservation]:
        return self._overlapping(resource_id, check_in, check_out, exclude_id).all()

    def has_conflict(self, resource_id: int, check_in: datetime, check_out: datetime,
                     exclude_id: Optional[str] = None) -> bool:
        return self.find_conflict(resource_id, check_in, check_out, exclude_id) is not None

    def ensure_no_conflict(self, resource: Resource, check_in: datetime, check_out: datetime,
                           exclude_id: Optional[str] = None) -> None:
        """
        Raises:
            DateConflictError: naming the resource and the conflicting dates
        """
        conflict = self.find_conflict(resource.id, check_in, check_out, exclude_id)
        if conflict is None:
            return
        raise DateConflictError(
            f"{resource.kind.value.title()} {resource.code} is already booked from "
            f"{conflict.check_in:%Y-%m-%d %H:%M} to {conflict.check_out:%Y-%m-%d %H:%M}",
            {
                "resource_id": resource.id,
                "resource_code": resource.code,
                "conflicting_reservation_id": conflict.id,
                "conflict_check_in": conflict.check_in.isoformat(),
                "conflict_check_out": conflict.check_out.isoformat(),
            },
        )
