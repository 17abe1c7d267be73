"""
Public reservation routes (online channel, no authentication)
Guests can book, check availability and look up their own reservation by
reference code; internal id lookups are not exposed here
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.models.ontology import Channel, Reservation, ResourceKind
from app.models.schemas import (
    ERROR_RESPONSES, PublicBookingResponse, PublicReservationRequest, PublicReservationResponse,
    ResourceResponse,
)
from app.services.interval_service import parse_interval
from app.services.reservation_service import ReservationService
from app.services.resource_service import ResourceService

router = APIRouter(prefix="/public", tags=["Public"], responses=ERROR_RESPONSES)


def to_public(reservation: Reservation) -> PublicReservationResponse:
    return PublicReservationResponse(
        reference=reservation.reference,
        status=reservation.status,
        guest_name=reservation.occupant.name,
        resource_code=reservation.resource.code,
        resource_name=reservation.resource.name,
        resource_kind=reservation.resource.kind,
        check_in=reservation.check_in,
        check_out=reservation.check_out,
        guest_count=reservation.guest_count,
        total=reservation.total,
        paid_amount=reservation.paid_amount,
        balance=reservation.balance,
        payment_status=reservation.payment_status,
    )


@router.post("/reservations", response_model=PublicBookingResponse, status_code=status.HTTP_201_CREATED)
def create_public_reservation(
    data: PublicReservationRequest,
    db: Session = Depends(get_db)
):
    """Online booking; tax applies unless apply_tax is false"""
    reservations = ReservationService(db).create(data, actor_id=None, channel=Channel.ONLINE)
    return PublicBookingResponse(
        reservations=[to_public(r) for r in reservations],
        total_amount=sum(r.total for r in reservations),
        currency=settings.CURRENCY,
    )


@router.get("/reservations/lookup", response_model=PublicReservationResponse)
def lookup_reservation(
    reference: str = Query(..., min_length=1),
    phone: str = Query(..., min_length=4),
    db: Session = Depends(get_db)
):
    """Look up a reservation by reference code and the guest's phone number"""
    return to_public(ReservationService(db).get_by_reference(reference, phone))


@router.get("/availability", response_model=List[ResourceResponse])
def get_availability(
    check_in: str,
    check_out: str,
    kind: Optional[ResourceKind] = None,
    db: Session = Depends(get_db)
):
    """Resources free for the whole interval"""
    start, end = parse_interval(check_in, check_out)
    return ResourceService(db).get_available(start, end, kind=kind)
