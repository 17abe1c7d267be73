"""
Reservation history routes - global audit view
"""
from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.models.ontology import HistoryAction
from app.models.schemas import ERROR_RESPONSES, HistoryEntryResponse, HistoryListResponse, PaginationMeta
from app.services.audit_service import HistoryService
from app.security.auth import get_current_actor

router = APIRouter(prefix="/history", tags=["History"], responses=ERROR_RESPONSES)


@router.get("", response_model=HistoryListResponse)
def list_history(
    reservation_id: Optional[str] = None,
    action: Optional[HistoryAction] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """History entries across all reservations, newest first"""
    entries, total = HistoryService(db).list_entries(
        reservation_id=reservation_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return HistoryListResponse(
        entries=[HistoryEntryResponse.model_validate(e) for e in entries],
        pagination=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
        ),
    )
