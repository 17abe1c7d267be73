"""
Reservation routes (staff channel)
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.models.ontology import Channel, PaymentStatus, ReservationStatus
from app.models.schemas import (
    ERROR_RESPONSES, BatchReservationResponse, CancelReservationRequest, CreateReservationRequest,
    HistoryEntryResponse, PaginationMeta, PaymentRequest, ReservationDetailResponse,
    ReservationListResponse, ReservationResponse, ReservationSummary, UpdateReservationRequest,
)
from app.services.audit_service import HistoryService
from app.services.reservation_service import ReservationService
from app.security.auth import get_current_actor

router = APIRouter(prefix="/reservations", tags=["Reservations"], responses=ERROR_RESPONSES)


@router.post("", response_model=BatchReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: CreateReservationRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Book one or more resources"""
    service = ReservationService(db)
    reservations = service.create(data, actor_id, Channel.STAFF)
    return BatchReservationResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations],
        total_amount=sum(r.total for r in reservations),
        currency=settings.CURRENCY,
    )


@router.get("", response_model=ReservationListResponse)
def list_reservations(
    status: Optional[ReservationStatus] = None,
    channel: Optional[Channel] = None,
    payment_status: Optional[PaymentStatus] = None,
    resource_id: Optional[int] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """List reservations with filters and a status summary"""
    service = ReservationService(db)
    result = service.list_reservations(
        status=status, channel=channel, payment_status=payment_status,
        resource_id=resource_id, on_date=on_date, start_date=start_date,
        end_date=end_date, search=search, page=page, limit=limit,
    )
    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in result.reservations],
        pagination=PaginationMeta(
            page=result.page, limit=result.limit, total=result.total, total_pages=result.total_pages
        ),
        summary=ReservationSummary(**result.summary),
    )


@router.get("/{reservation_id}", response_model=ReservationDetailResponse)
def get_reservation(
    reservation_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Reservation detail with recent history"""
    detail = ReservationService(db).get(reservation_id)
    base = ReservationResponse.model_validate(detail.reservation).model_dump()
    return ReservationDetailResponse(
        **base,
        recent_history=[HistoryEntryResponse.model_validate(h) for h in detail.recent_history],
        allowed_transitions=detail.allowed_transitions,
    )


@router.get("/{reservation_id}/history", response_model=List[HistoryEntryResponse])
def get_reservation_history(
    reservation_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Full history of one reservation, oldest first"""
    ReservationService(db).get_reservation(reservation_id)
    return HistoryService(db).get_for_reservation(reservation_id)


@router.patch("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: str,
    data: UpdateReservationRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Partial update, including status transitions"""
    return ReservationService(db).update(reservation_id, data, actor_id)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: str,
    data: Optional[CancelReservationRequest] = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Cancel a reservation"""
    reason = data.reason if data else None
    return ReservationService(db).cancel(reservation_id, actor_id, reason)


@router.post("/{reservation_id}/payments", response_model=ReservationResponse)
def record_payment(
    reservation_id: str,
    data: PaymentRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Record a payment against the outstanding balance"""
    return ReservationService(db).record_payment(
        reservation_id, data.amount, actor_id, payment_mode=data.payment_mode, notes=data.notes
    )
