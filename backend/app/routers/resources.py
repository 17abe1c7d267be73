"""
Resource routes - rooms and halls
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import ResourceKind, ResourceStatus
from app.models.schemas import ERROR_RESPONSES, ResourceCreate, ResourceResponse, ResourceUpdate, SlotResponse
from app.services.interval_service import parse_interval
from app.services.resource_service import ResourceService
from app.security.auth import get_current_actor

router = APIRouter(prefix="/resources", tags=["Resources"], responses=ERROR_RESPONSES)


@router.get("", response_model=List[ResourceResponse])
def list_resources(
    kind: Optional[ResourceKind] = None,
    status: Optional[ResourceStatus] = None,
    is_active: Optional[bool] = True,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    return ResourceService(db).get_resources(kind=kind, status=status, is_active=is_active)


@router.get("/available", response_model=List[ResourceResponse])
def list_available_resources(
    check_in: str,
    check_out: str,
    kind: Optional[ResourceKind] = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Resources with no overlapping active reservation"""
    start, end = parse_interval(check_in, check_out)
    return ResourceService(db).get_available(start, end, kind=kind)


@router.post("", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
def create_resource(
    data: ResourceCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    return ResourceService(db).create_resource(data)


@router.get("/{resource_id}", response_model=ResourceResponse)
def get_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    return ResourceService(db).require_resource(resource_id)


@router.patch("/{resource_id}", response_model=ResourceResponse)
def update_resource(
    resource_id: int,
    data: ResourceUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    return ResourceService(db).update_resource(resource_id, data)


@router.delete("/{resource_id}")
def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    """Delete a resource no reservation refers to"""
    ResourceService(db).delete_resource(resource_id)
    return {"message": "Resource deleted"}


@router.get("/{resource_id}/slots", response_model=List[SlotResponse])
def list_slots(
    resource_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_current_actor)
):
    return ResourceService(db).get_slots(resource_id, start_date, end_date)
